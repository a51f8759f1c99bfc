# backend/tourbook/services/availability/aggregator.py
"""
Booking Aggregator.

Reduces a month of bookings into consumed guests per date and slot:

    {"2025-09-01": {"09:00": 10, "14:00": 3}, ...}

Cancelled bookings never count. The month is fetched in one bulk read.
"""

from datetime import date, datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import InvalidInput
from ...models import Bookings
from .records import BookingRecord

CANCELLED = "Cancelled"

Consumed = dict[str, dict[str, int]]


def aggregate_bookings(bookings: Iterable[BookingRecord]) -> Consumed:
    """Sum guests per ISO date and slot time, skipping cancelled bookings."""
    consumed: Consumed = {}
    for booking in bookings:
        if booking.status == CANCELLED:
            continue
        guests = booking.guests or 0
        day = consumed.setdefault(booking.date.isoformat(), {})
        day[booking.time] = day.get(booking.time, 0) + guests
    return consumed


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


async def load_month_bookings(
    db: AsyncSession,
    tour_id: int,
    month_start: date | datetime,
    month_end: date | datetime,
) -> list[BookingRecord]:
    """Non-cancelled bookings of a tour within [month_start, month_end]."""
    first, last = _as_date(month_start), _as_date(month_end)
    result = await db.execute(
        select(Bookings.date, Bookings.time, Bookings.guests, Bookings.status)
        .where(
            Bookings.tour_id == tour_id,
            Bookings.date >= first,
            Bookings.date <= last,
            Bookings.status != CANCELLED,
        )
    )
    return [
        BookingRecord(date=row.date, time=row.time, guests=row.guests, status=row.status)
        for row in result
    ]


async def aggregate_month(
    db: AsyncSession,
    tour_id: int,
    month_start: date | datetime,
    month_end: date | datetime,
) -> Consumed:
    if _as_date(month_start) > _as_date(month_end):
        raise InvalidInput("Range start must not be after range end")
    bookings = await load_month_bookings(db, tour_id, month_start, month_end)
    return aggregate_bookings(bookings)
