# backend/tourbook/services/availability/__init__.py
"""
Tour availability and slot-booking.

Read side:  aggregator (bookings → consumed per slot) + resolver (month view)
Write side: ledger (atomic booking create/cancel, admin capacity edits)
Overrides:  stop_sales (date-range blackouts with audit log)
"""

from .config import AvailabilityConfig, get_availability_config
from .cache import AvailabilityCache, MemoryAvailabilityCache, RedisAvailabilityCache
from .locks import LedgerLocks, LocalLedgerLocks, RedisLedgerLocks
from .aggregator import aggregate_bookings, aggregate_month
from .resolver import get_month_availability, resolve_month
from .ledger import BookingRequest, cancel_booking, create_booking
from .stop_sales import apply_stop_sale, is_blocked, is_sale_stopped, remove_stop_sale

__all__ = [
    "AvailabilityConfig",
    "get_availability_config",
    "AvailabilityCache",
    "MemoryAvailabilityCache",
    "RedisAvailabilityCache",
    "LedgerLocks",
    "LocalLedgerLocks",
    "RedisLedgerLocks",
    "aggregate_bookings",
    "aggregate_month",
    "get_month_availability",
    "resolve_month",
    "BookingRequest",
    "cancel_booking",
    "create_booking",
    "apply_stop_sale",
    "is_blocked",
    "is_sale_stopped",
    "remove_stop_sale",
]
