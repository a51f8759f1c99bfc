# backend/tourbook/services/availability/templates.py
"""
Tour availability template: decoding stored JSON into AvailabilityTemplate.
"""

import json
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import NotFound
from ...models import Tours
from .records import AvailabilityTemplate, SlotTemplate

logger = logging.getLogger(__name__)


def _loads(raw: str | None, default):
    try:
        value = json.loads(raw) if raw else default
    except json.JSONDecodeError:
        return default
    return value if value is not None else default


def _parse_dates(values: list) -> frozenset[date]:
    result = set()
    for value in values:
        try:
            result.add(date.fromisoformat(str(value)[:10]))
        except ValueError:
            continue
    return frozenset(result)


def template_from_tour(tour: Tours) -> AvailabilityTemplate:
    """Build a template from a tour row. Malformed entries are dropped."""
    raw_slots = _loads(tour.slots, [])
    slots: list[SlotTemplate] = []
    seen: set[str] = set()
    for raw in raw_slots:
        if not isinstance(raw, dict) or "time" not in raw:
            continue
        time_str = str(raw["time"])
        if time_str in seen:
            logger.warning(f"Tour {tour.id}: duplicate slot {time_str} ignored")
            continue
        seen.add(time_str)
        slots.append(SlotTemplate(time=time_str, capacity=max(int(raw.get("capacity", 0)), 0)))

    days = _loads(tour.available_days, [])
    available_days = frozenset(int(d) for d in days if str(d).isdigit() and 0 <= int(d) <= 6)

    return AvailabilityTemplate(
        tour_id=tour.id,
        slots=tuple(slots),
        available_days=available_days,
        availability_type=tour.availability_type or "daily",
        start_date=tour.start_date,
        end_date=tour.end_date,
        specific_dates=_parse_dates(_loads(tour.specific_dates, [])),
        blocked_dates=_parse_dates(_loads(tour.blocked_dates, [])),
    )


def dump_template_fields(
    available_days: list[int],
    slots: list[dict],
    specific_dates: list[date],
    blocked_dates: list[date],
) -> dict:
    """Column values for Tours from validated template parts."""
    return {
        "available_days": json.dumps(sorted(set(available_days))),
        "slots": json.dumps([{"time": s["time"], "capacity": s["capacity"]} for s in slots]),
        "specific_dates": json.dumps(sorted(d.isoformat() for d in specific_dates)),
        "blocked_dates": json.dumps(sorted(d.isoformat() for d in blocked_dates)),
    }


async def get_tour(db: AsyncSession, tour_id: int) -> Tours:
    """Load a tour or raise NotFound."""
    tour = await db.get(Tours, tour_id)
    if tour is None:
        raise NotFound(f"Tour {tour_id} not found")
    return tour


async def load_template(db: AsyncSession, tour_id: int) -> AvailabilityTemplate:
    """
    Load a tour's availability template.

    Raises:
        NotFound: tour does not exist or has no template.
    """
    result = await db.execute(
        select(Tours)
        .where(Tours.id == tour_id)
        .execution_options(populate_existing=True)
    )
    tour = result.scalar_one_or_none()
    if tour is None or tour.slots is None or tour.available_days is None:
        raise NotFound("Tour or availability rules not found")
    return template_from_tour(tour)
