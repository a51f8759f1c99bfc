from .tables import (
    Base,
    metadata,
    Tours,
    TourOptions,
    Bookings,
    AvailabilityDays,
    AvailabilitySlots,
    StopSales,
    StopSaleLogs,
    BOOKING_STATUSES,
    STOP_SALE_LOG_STATUSES,
)

__all__ = [
    "Base",
    "metadata",
    "Tours",
    "TourOptions",
    "Bookings",
    "AvailabilityDays",
    "AvailabilitySlots",
    "StopSales",
    "StopSaleLogs",
    "BOOKING_STATUSES",
    "STOP_SALE_LOG_STATUSES",
]
