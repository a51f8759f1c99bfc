# backend/tourbook/services/availability/config.py
"""
Configuration for availability calculation.
"""

import re
from dataclasses import dataclass
from functools import lru_cache

from ...config import settings

TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


@dataclass(frozen=True)
class AvailabilityConfig:
    """
    Configuration for the availability/ledger subsystem.

    Attributes:
        cache_ttl_seconds: TTL of a cached month of availability
        lock_timeout_seconds: How long a ledger mutation may hold its lock
    """
    cache_ttl_seconds: int = 300
    lock_timeout_seconds: float = 10.0

    def __post_init__(self):
        if self.cache_ttl_seconds < 0:
            raise ValueError(f"cache_ttl_seconds must be >= 0, got {self.cache_ttl_seconds}")
        if self.lock_timeout_seconds <= 0:
            raise ValueError(f"lock_timeout_seconds must be > 0, got {self.lock_timeout_seconds}")


@lru_cache
def get_availability_config() -> AvailabilityConfig:
    """Get availability configuration (singleton built from settings)."""
    return AvailabilityConfig(
        cache_ttl_seconds=settings.availability_cache_ttl_seconds,
        lock_timeout_seconds=settings.lock_timeout_seconds,
    )


def is_valid_time_str(value: str) -> bool:
    """True for "HH:MM" in 00:00..23:59."""
    return isinstance(value, str) and bool(TIME_RE.match(value))

