# backend/tourbook/services/availability/records.py
"""
Plain data passed between the loaders and the pure calculation code.

The resolver and the aggregator only see these structures, never ORM rows.
"""

from dataclasses import dataclass, field
from datetime import date

from .dates import weekday_index


@dataclass(frozen=True)
class SlotTemplate:
    time: str  # "HH:MM"
    capacity: int


@dataclass(frozen=True)
class AvailabilityTemplate:
    """Recurring weekly pattern of a tour."""
    tour_id: int
    slots: tuple[SlotTemplate, ...]
    available_days: frozenset[int] = frozenset(range(7))
    availability_type: str = "daily"  # daily / date_range / specific_dates
    start_date: date | None = None
    end_date: date | None = None
    specific_dates: frozenset[date] = frozenset()
    blocked_dates: frozenset[date] = frozenset()

    def is_offered(self, day: date) -> bool:
        """Whether the tour runs on this calendar date at all."""
        if day in self.blocked_dates:
            return False

        if self.availability_type == "specific_dates":
            return day in self.specific_dates

        if weekday_index(day) not in self.available_days:
            return False

        if self.availability_type == "date_range":
            if self.start_date and day < self.start_date:
                return False
            if self.end_date and day > self.end_date:
                return False

        return True

    def slot(self, time_str: str) -> SlotTemplate | None:
        for slot in self.slots:
            if slot.time == time_str:
                return slot
        return None


@dataclass(frozen=True)
class BookingRecord:
    date: date
    time: str
    guests: int
    status: str = "Confirmed"


@dataclass(frozen=True)
class LedgerSlot:
    time: str
    capacity: int
    booked: int = 0
    blocked: bool = False
    extra_capacity: int = 0

    @property
    def effective_capacity(self) -> int:
        return self.capacity + (self.extra_capacity or 0)


@dataclass(frozen=True)
class LedgerDay:
    date: date
    slots: tuple[LedgerSlot, ...]
    stop_sale: bool = False


@dataclass(frozen=True)
class StopSaleRule:
    start_date: date
    end_date: date
    option_ids: frozenset[str] = frozenset()
    id: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class OpenSlot:
    time: str
    remaining: int


@dataclass
class MonthAvailability:
    available_slots_by_date: dict[str, list[OpenSlot]] = field(default_factory=dict)
    fully_booked_dates: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Wire shape of GET /tours/{id}/availability."""
        return {
            "availableSlotsByDate": {
                day: [{"time": s.time, "remaining": s.remaining} for s in slots]
                for day, slots in self.available_slots_by_date.items()
            },
            "fullyBookedDates": list(self.fully_booked_dates),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MonthAvailability":
        return cls(
            available_slots_by_date={
                day: [OpenSlot(time=s["time"], remaining=s["remaining"]) for s in slots]
                for day, slots in data.get("availableSlotsByDate", {}).items()
            },
            fully_booked_dates=list(data.get("fullyBookedDates", [])),
        )
