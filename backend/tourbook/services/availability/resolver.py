# backend/tourbook/services/availability/resolver.py
"""
Availability Resolver.

Produces, for one calendar month of a tour:
  availableSlotsByDate: date → open slots [{time, remaining}] in slot order
  fullyBookedDates    : offered dates whose slots are all consumed or stop-sold

Inputs (loaded in bulk before the day walk, never per day):
- Tour template (offered days + slots with capacity)
- Consumed guests per date/slot (Booking Aggregator)
- Ledger days (materialized per-date slots; override the template)
- Stop-sale rules (post-filter)

Days that are not offered, and offered days with no slots at all, appear in
neither output.
"""

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from redis.exceptions import RedisError

from ...errors import DataIntegrityAnomaly, InvalidInput, Unavailable
from ...models import TourOptions
from .aggregator import Consumed, aggregate_month
from .cache import AvailabilityCache, month_cache_key
from .dates import iter_days, month_bounds, month_key, parse_month
from .ledger import load_ledger_days
from .records import (
    AvailabilityTemplate,
    LedgerDay,
    MonthAvailability,
    OpenSlot,
    StopSaleRule,
)
from .stop_sales import is_sale_stopped, load_rules
from .templates import load_template

logger = logging.getLogger(__name__)


def resolve_month(
    template: AvailabilityTemplate,
    year: int,
    month: int,
    consumed: Consumed,
    ledger_days: dict[str, LedgerDay] | None = None,
    rules: list[StopSaleRule] | None = None,
    option_id: str | None = None,
    anomalies: list[DataIntegrityAnomaly] | None = None,
) -> MonthAvailability:
    """
    Walk the month day by day and build the availability.

    Args:
        template: Tour template
        year, month: Calendar month (month is 1-based)
        consumed: {iso_date: {time: guests}} of non-cancelled bookings
        ledger_days: {iso_date: LedgerDay}; a present day replaces the
                     template + consumed calculation for its slots
        rules: Stop-sale rules overlapping the month
        option_id: Booking option being queried, if any
        anomalies: Collects over-booking anomalies (also logged)
    """
    ledger_days = ledger_days or {}
    rules = rules or []
    month_start, month_end = month_bounds(year, month)

    result = MonthAvailability()
    empty_days: list[str] = []

    for day in iter_days(month_start, month_end):
        if not template.is_offered(day):
            continue

        date_key = day.isoformat()
        ledger = ledger_days.get(date_key)
        states = _slot_states(template, consumed.get(date_key, {}), ledger)

        if not states:
            empty_days.append(date_key)
            continue

        open_slots: list[OpenSlot] = []
        for time_str, remaining, blocked in states:
            if remaining < 0:
                anomaly = DataIntegrityAnomaly(
                    f"Tour {template.tour_id} {date_key} {time_str}: "
                    f"over-booked by {-remaining}"
                )
                logger.warning(f"Data integrity anomaly: {anomaly}")
                if anomalies is not None:
                    anomalies.append(anomaly)
                remaining = 0
            if blocked or remaining <= 0:
                continue
            open_slots.append(OpenSlot(time=time_str, remaining=remaining))

        stopped = (ledger is not None and ledger.stop_sale) or is_sale_stopped(
            rules, day, option_id
        )

        if open_slots and not stopped:
            result.available_slots_by_date[date_key] = open_slots
        else:
            result.fully_booked_dates.append(date_key)

    if empty_days:
        logger.warning(
            f"Tour {template.tour_id}: no slots defined on offered days "
            f"{empty_days[0]}..{empty_days[-1]} ({len(empty_days)} days)"
        )

    return result


def _slot_states(
    template: AvailabilityTemplate,
    day_consumed: dict[str, int],
    ledger: LedgerDay | None,
) -> list[tuple[str, int, bool]]:
    """(time, raw remaining, blocked) per slot, in ledger/template order."""
    if ledger is None:
        return [
            (slot.time, slot.capacity - day_consumed.get(slot.time, 0), False)
            for slot in template.slots
        ]

    states = [
        (slot.time, slot.effective_capacity - slot.booked, slot.blocked)
        for slot in ledger.slots
    ]
    # Template slots added after the ledger row was created
    known = {slot.time for slot in ledger.slots}
    for slot in template.slots:
        if slot.time not in known:
            states.append((slot.time, slot.capacity - day_consumed.get(slot.time, 0), False))
    return states


async def _option_belongs_to_tour(db: AsyncSession, tour_id: int, option_id: str) -> bool:
    if not option_id.isdigit():
        return False
    option = await db.get(TourOptions, int(option_id))
    return option is not None and option.tour_id == tour_id


async def get_month_availability(
    db: AsyncSession,
    tour_id: int,
    month: str | None,
    option_id: str | None = None,
    cache: AvailabilityCache | None = None,
) -> MonthAvailability:
    """
    Availability of a tour for "YYYY-MM".

    Raises:
        InvalidInput: malformed month, or option_id not an option of the tour.
        NotFound: unknown tour or missing template.
        Unavailable: database failure.
    """
    year, mon = parse_month(month)
    if option_id is not None:
        option_id = option_id.strip() or None

    # Taken before loading: a change committed after this point bumps it
    generation = None
    if cache is not None:
        try:
            generation = await cache.generation(tour_id)
        except RedisError:
            logger.exception(f"Availability cache generation read failed for tour {tour_id}")

    key = None
    if generation is not None:
        key = month_cache_key(tour_id, month_key(year, mon), option_id, generation)
        try:
            cached = await cache.get(key)
        except RedisError:
            logger.exception(f"Availability cache read failed for {key}")
            cached = None
        if cached is not None:
            return MonthAvailability.from_dict(cached)

    month_start, month_end = month_bounds(year, mon)
    first: date = month_start.date()
    last: date = month_end.date()

    try:
        template = await load_template(db, tour_id)
        if option_id is not None and not await _option_belongs_to_tour(db, tour_id, option_id):
            raise InvalidInput(f"Option {option_id} does not belong to tour {tour_id}")
        consumed = await aggregate_month(db, tour_id, month_start, month_end)
        ledger_days = await load_ledger_days(db, tour_id, first, last)
        rules = await load_rules(db, tour_id, first, last)
    except SQLAlchemyError as e:
        logger.exception(f"Failed to load availability for tour {tour_id} {month}")
        raise Unavailable("Availability temporarily unavailable") from e

    availability = resolve_month(
        template, year, mon, consumed, ledger_days, rules, option_id
    )

    if key is not None:
        try:
            await cache.set(key, availability.to_dict())
        except RedisError:
            logger.exception(f"Availability cache write failed for {key}")

    return availability
