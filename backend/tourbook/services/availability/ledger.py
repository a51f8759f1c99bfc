# backend/tourbook/services/availability/ledger.py
"""
Slot Capacity Ledger.

One availability_days row per (tour, date) with an availability_slots row
per slot. Every change to `booked` goes through this module:

  create_booking : conditional increment, then insert the booking
  cancel_booking : decrement (never below zero), then mark Cancelled
  update_ledger_slot / set_day_stop_sale: admin edits

The increment is a single statement:

  UPDATE availability_slots SET booked = booked + :guests
  WHERE id = :slot AND NOT blocked
    AND booked + :guests <= capacity + extra_capacity

so two concurrent bookings can never both take the last seats, with or
without the per-(tour, date) lock.

Ledger rows are created on first mutation: built from the tour template,
seeded with guests of existing non-cancelled bookings, inserted; if the
(tour_id, date) / (day_id, time) uniqueness constraint rejects the insert,
another writer created it first and its row is reloaded.
"""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ...errors import (
    CapacityExceeded,
    Conflict,
    InvalidInput,
    NotFound,
    SalesStopped,
    Unavailable,
)
from ...models import AvailabilityDays, AvailabilitySlots, Bookings, TourOptions
from .aggregator import aggregate_month
from .cache import AvailabilityCache, invalidate_months
from .config import is_valid_time_str
from .dates import months_between
from .locks import LedgerLocks
from .records import AvailabilityTemplate, LedgerDay, LedgerSlot
from .stop_sales import is_blocked
from .templates import load_template

logger = logging.getLogger(__name__)

CANCELLED = "Cancelled"


@dataclass(frozen=True)
class BookingRequest:
    """Checkout data needed to take seats in a slot."""
    tour_id: int
    date: date
    time: str
    adult_guests: int = 1
    child_guests: int = 0
    infant_guests: int = 0
    option_id: int | None = None
    status: str = "Confirmed"
    total_price: float | None = None
    customer_email: str | None = None

    @property
    def guests(self) -> int:
        return self.adult_guests + self.child_guests + self.infant_guests


# ── Reads ────────────────────────────────────────────────────────────────


def ledger_day_from_row(row: AvailabilityDays) -> LedgerDay:
    return LedgerDay(
        date=row.date,
        stop_sale=bool(row.stop_sale),
        slots=tuple(
            LedgerSlot(
                time=slot.time,
                capacity=slot.capacity,
                booked=slot.booked,
                blocked=bool(slot.blocked),
                extra_capacity=slot.extra_capacity or 0,
            )
            for slot in sorted(row.slots, key=lambda s: (s.position, s.id or 0))
        ),
    )


async def load_ledger_days(
    db: AsyncSession,
    tour_id: int,
    first: date,
    last: date,
) -> dict[str, LedgerDay]:
    """Ledger days of a tour in [first, last], keyed by ISO date."""
    result = await db.execute(
        select(AvailabilityDays)
        .options(selectinload(AvailabilityDays.slots))
        .where(
            AvailabilityDays.tour_id == tour_id,
            AvailabilityDays.date >= first,
            AvailabilityDays.date <= last,
        )
        .execution_options(populate_existing=True)
    )
    return {row.date.isoformat(): ledger_day_from_row(row) for row in result.scalars()}


async def _load_day_row(db: AsyncSession, tour_id: int, day: date) -> AvailabilityDays | None:
    result = await db.execute(
        select(AvailabilityDays)
        .options(selectinload(AvailabilityDays.slots))
        .where(AvailabilityDays.tour_id == tour_id, AvailabilityDays.date == day)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_ledger_day(db: AsyncSession, tour_id: int, day: date) -> AvailabilityDays:
    row = await _load_day_row(db, tour_id, day)
    if row is None:
        raise NotFound(f"No ledger for tour {tour_id} on {day.isoformat()}")
    return row


# ── Upsert on first mutation ─────────────────────────────────────────────


async def _booked_on(db: AsyncSession, tour_id: int, day: date) -> dict[str, int]:
    consumed = await aggregate_month(db, tour_id, day, day)
    return consumed.get(day.isoformat(), {})


async def ensure_ledger_day(
    db: AsyncSession,
    template: AvailabilityTemplate,
    day: date,
) -> AvailabilityDays:
    """Return the ledger day, creating it from the template if absent."""
    tour_id = template.tour_id
    row = await _load_day_row(db, tour_id, day)
    if row is not None:
        return row

    booked = await _booked_on(db, tour_id, day)
    row = AvailabilityDays(
        tour_id=tour_id,
        date=day,
        stop_sale=False,
        slots=[
            AvailabilitySlots(
                position=position,
                time=slot.time,
                capacity=slot.capacity,
                booked=booked.get(slot.time, 0),
                blocked=False,
                extra_capacity=0,
            )
            for position, slot in enumerate(template.slots)
        ],
    )
    db.add(row)
    try:
        await db.flush()
        logger.info(f"Ledger created: tour={tour_id} date={day.isoformat()}")
        return row
    except IntegrityError:
        await db.rollback()
        logger.info(f"Ledger tour={tour_id} date={day.isoformat()} created concurrently, reloading")

    row = await _load_day_row(db, tour_id, day)
    if row is None:
        raise Unavailable("Ledger could not be created, please retry")
    return row


async def ensure_ledger_slot(
    db: AsyncSession,
    template: AvailabilityTemplate,
    day: date,
    time_str: str,
) -> tuple[AvailabilityDays, AvailabilitySlots | None]:
    """
    Return (ledger day, ledger slot) for a slot time.

    The slot is created when the template has it but the ledger does not
    (template edited after the ledger row was made). None when neither has it.
    """
    row = await ensure_ledger_day(db, template, day)
    for slot in row.slots:
        if slot.time == time_str:
            return row, slot

    tpl = template.slot(time_str)
    if tpl is None:
        return row, None

    booked = await _booked_on(db, template.tour_id, day)
    slot = AvailabilitySlots(
        day_id=row.id,
        position=max((s.position for s in row.slots), default=-1) + 1,
        time=time_str,
        capacity=tpl.capacity,
        booked=booked.get(time_str, 0),
        blocked=False,
        extra_capacity=0,
    )
    db.add(slot)
    try:
        await db.flush()
        return row, slot
    except IntegrityError:
        await db.rollback()

    row = await _load_day_row(db, template.tour_id, day)
    for slot in row.slots if row else []:
        if slot.time == time_str:
            return row, slot
    raise Unavailable("Ledger could not be created, please retry")


# ── Atomic counters ──────────────────────────────────────────────────────


async def _reserve_seats(db: AsyncSession, slot_id: int, guests: int) -> bool:
    """Conditional increment. False when the slot lacks room or is blocked."""
    result = await db.execute(
        update(AvailabilitySlots)
        .where(
            AvailabilitySlots.id == slot_id,
            AvailabilitySlots.blocked.is_(False),
            AvailabilitySlots.booked + guests
            <= AvailabilitySlots.capacity + AvailabilitySlots.extra_capacity,
        )
        .values(booked=AvailabilitySlots.booked + guests)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _release_seats(db: AsyncSession, slot_id: int, guests: int) -> None:
    """Decrement, clamped at zero."""
    await db.execute(
        update(AvailabilitySlots)
        .where(AvailabilitySlots.id == slot_id)
        .values(
            booked=case(
                (AvailabilitySlots.booked >= guests, AvailabilitySlots.booked - guests),
                else_=0,
            )
        )
        .execution_options(synchronize_session=False)
    )


# ── Bookings ─────────────────────────────────────────────────────────────


async def create_booking(
    db: AsyncSession,
    locks: LedgerLocks,
    request: BookingRequest,
    cache: AvailabilityCache | None = None,
) -> Bookings:
    """
    Take seats and persist the booking in one transaction.

    Raises:
        InvalidInput: no guests, unknown slot time, day not offered, bad option.
        NotFound: unknown tour.
        SalesStopped: stop-sale covers the date/option.
        CapacityExceeded: not enough seats left at commit time.
    """
    guests = request.guests
    if min(request.adult_guests, request.child_guests, request.infant_guests) < 0:
        raise InvalidInput("Guest counts must not be negative")
    if guests <= 0:
        raise InvalidInput("At least one guest is required")
    if request.status == CANCELLED:
        raise InvalidInput("Cannot create a cancelled booking")
    if not is_valid_time_str(request.time):
        raise InvalidInput(f"Invalid time '{request.time}', expected HH:MM")

    tour_id, day, time_str = request.tour_id, request.date, request.time

    async with locks.hold(tour_id, day):
        try:
            template = await load_template(db, tour_id)

            if template.slot(time_str) is None:
                raise InvalidInput(f"Time {time_str} is not offered for this tour")
            if not template.is_offered(day):
                raise InvalidInput(f"Tour is not offered on {day.isoformat()}")

            option_key = None
            if request.option_id is not None:
                option = await db.get(TourOptions, request.option_id)
                if option is None or option.tour_id != tour_id:
                    raise InvalidInput(f"Option {request.option_id} does not belong to tour {tour_id}")
                option_key = str(request.option_id)

            if await is_blocked(db, tour_id, day, option_key):
                raise SalesStopped("Sales are stopped for the selected date")

            day_row, slot = await ensure_ledger_slot(db, template, day, time_str)
            if day_row.stop_sale:
                raise SalesStopped("Sales are stopped for the selected date")

            if not await _reserve_seats(db, slot.id, guests):
                logger.info(
                    f"Booking rejected, capacity exceeded: tour={tour_id} "
                    f"{day.isoformat()} {time_str} guests={guests}"
                )
                raise CapacityExceeded("Selected time slot is no longer available")

            booking = Bookings(
                tour_id=tour_id,
                option_id=request.option_id,
                date=day,
                time=time_str,
                adult_guests=request.adult_guests,
                child_guests=request.child_guests,
                infant_guests=request.infant_guests,
                guests=guests,
                status=request.status,
                total_price=request.total_price,
                customer_email=request.customer_email,
            )
            db.add(booking)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(
        f"Booking {booking.id} created: tour={tour_id} {day.isoformat()} "
        f"{time_str} guests={guests}"
    )
    await invalidate_months(cache, tour_id, months_between(day, day))
    return booking


async def cancel_booking(
    db: AsyncSession,
    locks: LedgerLocks,
    booking_id: int,
    reason: str | None = None,
    cache: AvailabilityCache | None = None,
) -> Bookings:
    """
    Cancel a booking and give its seats back. Cancelling twice is a no-op.

    Raises:
        NotFound: unknown booking.
    """
    booking = await db.get(Bookings, booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found")
    if booking.status == CANCELLED:
        return booking

    tour_id, day, time_str = booking.tour_id, booking.date, booking.time

    async with locks.hold(tour_id, day):
        try:
            booking = await db.get(Bookings, booking_id, populate_existing=True)
            if booking.status == CANCELLED:
                return booking

            template = await load_template(db, tour_id)
            _, slot = await ensure_ledger_slot(db, template, day, time_str)

            # ensure_ledger_slot may roll back and expire loaded rows
            booking = await db.get(Bookings, booking_id, populate_existing=True)
            guests = booking.guests or 0

            if slot is not None:
                if slot.booked < guests:
                    logger.warning(
                        f"Data integrity anomaly: tour={tour_id} {day.isoformat()} "
                        f"{time_str} booked={slot.booked} < cancelled guests={guests}"
                    )
                await _release_seats(db, slot.id, guests)
            else:
                logger.warning(
                    f"Booking {booking_id}: slot {time_str} no longer exists, "
                    "nothing to release"
                )

            booking.status = CANCELLED
            booking.cancel_reason = reason
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(f"Booking {booking_id} cancelled: tour={tour_id} {day.isoformat()} {time_str}")
    await invalidate_months(cache, tour_id, months_between(day, day))
    return booking


# ── Admin edits ──────────────────────────────────────────────────────────


async def update_ledger_slot(
    db: AsyncSession,
    locks: LedgerLocks,
    tour_id: int,
    day: date,
    time_str: str,
    capacity: int | None = None,
    extra_capacity: int | None = None,
    blocked: bool | None = None,
    block_reason: str | None = None,
    cache: AvailabilityCache | None = None,
) -> AvailabilitySlots:
    """
    Admin capacity edit for one slot of one date.

    Capacity may not drop below already booked guests.

    Raises:
        NotFound: unknown tour or slot time.
        InvalidInput: negative capacity values.
        Conflict: new capacity below booked guests.
    """
    if capacity is not None and capacity < 0:
        raise InvalidInput("capacity must be >= 0")
    if extra_capacity is not None and extra_capacity < 0:
        raise InvalidInput("extra_capacity must be >= 0")

    async with locks.hold(tour_id, day):
        try:
            template = await load_template(db, tour_id)
            _, slot = await ensure_ledger_slot(db, template, day, time_str)
            if slot is None:
                raise NotFound(f"Slot {time_str} not found for tour {tour_id}")
            slot_id = slot.id

            values: dict = {}
            if capacity is not None:
                values["capacity"] = capacity
            if extra_capacity is not None:
                values["extra_capacity"] = extra_capacity
            if blocked is not None:
                values["blocked"] = blocked
                values["block_reason"] = block_reason if blocked else None
            elif block_reason is not None:
                values["block_reason"] = block_reason

            if values:
                new_capacity = values.get("capacity", AvailabilitySlots.capacity)
                new_extra = values.get("extra_capacity", AvailabilitySlots.extra_capacity)
                result = await db.execute(
                    update(AvailabilitySlots)
                    .where(
                        AvailabilitySlots.id == slot_id,
                        AvailabilitySlots.booked <= new_capacity + new_extra,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise Conflict("Capacity cannot be lower than booked guests")

            await db.commit()
            slot = await db.get(AvailabilitySlots, slot_id, populate_existing=True)
        except Exception:
            await db.rollback()
            raise

    logger.info(f"Ledger slot updated: tour={tour_id} {day.isoformat()} {time_str} {values}")
    await invalidate_months(cache, tour_id, months_between(day, day))
    return slot


async def set_day_stop_sale(
    db: AsyncSession,
    locks: LedgerLocks,
    tour_id: int,
    day: date,
    stop_sale: bool,
    reason: str | None = None,
    cache: AvailabilityCache | None = None,
) -> AvailabilityDays:
    """Ledger-level stop-sale flag for a single date."""
    async with locks.hold(tour_id, day):
        try:
            template = await load_template(db, tour_id)
            row = await ensure_ledger_day(db, template, day)
            row.stop_sale = stop_sale
            row.stop_sale_reason = reason if stop_sale else None
            await db.commit()
            row = await _load_day_row(db, tour_id, day)
        except Exception:
            await db.rollback()
            raise

    logger.info(f"Ledger stop-sale {'on' if stop_sale else 'off'}: tour={tour_id} {day.isoformat()}")
    await invalidate_months(cache, tour_id, months_between(day, day))
    return row
