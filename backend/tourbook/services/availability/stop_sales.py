# backend/tourbook/services/availability/stop_sales.py
"""
Stop-Sale Rule Evaluator and administration.

A rule blocks sales for [start_date, end_date] (inclusive), either for all
booking options (empty option_ids) or only for the listed ones.
Applying/removing a rule appends to the stop-sale log.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...errors import Conflict, InvalidInput, NotFound
from ...models import StopSaleLogs, StopSales
from .cache import AvailabilityCache, invalidate_months
from .dates import months_between
from .records import StopSaleRule
from .templates import get_tour

logger = logging.getLogger(__name__)


# ── Evaluation ───────────────────────────────────────────────────────────


def rule_matches(rule: StopSaleRule, day: date, option_id: str | None = None) -> bool:
    if not rule.start_date <= day <= rule.end_date:
        return False
    if not rule.option_ids:
        return True
    return option_id is not None and str(option_id) in rule.option_ids


def is_sale_stopped(
    rules: Iterable[StopSaleRule],
    day: date,
    option_id: str | None = None,
) -> bool:
    """Any matching rule blocks the date/option."""
    return any(rule_matches(rule, day, option_id) for rule in rules)


def canonical_option_ids(option_ids: Iterable) -> str:
    """Stored form of option_ids: sorted, de-duplicated JSON list of strings."""
    return json.dumps(sorted({str(o) for o in option_ids if str(o).strip()}))


def rule_from_row(row: StopSales) -> StopSaleRule:
    try:
        option_ids = json.loads(row.option_ids) if row.option_ids else []
    except json.JSONDecodeError:
        option_ids = []
    return StopSaleRule(
        id=row.id,
        start_date=row.start_date,
        end_date=row.end_date,
        option_ids=frozenset(str(o) for o in option_ids),
        reason=row.reason,
    )


async def load_rules(
    db: AsyncSession,
    tour_id: int,
    first: date,
    last: date,
) -> list[StopSaleRule]:
    """Rules of a tour overlapping [first, last]."""
    result = await db.execute(
        select(StopSales).where(
            StopSales.tour_id == tour_id,
            StopSales.start_date <= last,
            StopSales.end_date >= first,
        )
    )
    return [rule_from_row(row) for row in result.scalars()]


async def is_blocked(
    db: AsyncSession,
    tour_id: int,
    day: date,
    option_id: str | None = None,
) -> bool:
    rules = await load_rules(db, tour_id, day, day)
    return is_sale_stopped(rules, day, option_id)


# ── Administration ───────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def apply_stop_sale(
    db: AsyncSession,
    tour_id: int,
    start_date: date,
    end_date: date,
    option_ids: Iterable | None = None,
    reason: str | None = None,
    actor: str = "system",
    cache: AvailabilityCache | None = None,
) -> StopSales:
    """
    Create a stop-sale rule and its log entries.

    Raises:
        InvalidInput: start_date after end_date.
        NotFound: unknown tour.
        Conflict: identical rule already exists.
    """
    if start_date > end_date:
        raise InvalidInput("start_date must not be after end_date")

    await get_tour(db, tour_id)

    options_json = canonical_option_ids(option_ids or [])
    existing = await db.execute(
        select(StopSales.id).where(
            StopSales.tour_id == tour_id,
            StopSales.start_date == start_date,
            StopSales.end_date == end_date,
            StopSales.option_ids == options_json,
        )
    )
    if existing.first() is not None:
        raise Conflict("Stop-sale already exists for this tour, range and options")

    rule = StopSales(
        tour_id=tour_id,
        option_ids=options_json,
        start_date=start_date,
        end_date=end_date,
        reason=reason,
    )
    db.add(rule)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise Conflict("Stop-sale already exists for this tour, range and options")

    now = _utcnow()
    scoped = json.loads(options_json) or [None]
    for option_id in scoped:
        db.add(StopSaleLogs(
            tour_id=tour_id,
            stop_sale_id=rule.id,
            option_id=option_id,
            date_from=start_date,
            date_to=end_date,
            reason=reason or "",
            applied_by=actor,
            applied_at=now,
            status="active",
        ))

    await db.commit()
    logger.info(
        f"Stop-sale {rule.id} applied: tour={tour_id} {start_date}..{end_date} "
        f"options={options_json} by={actor}"
    )

    await invalidate_months(cache, tour_id, months_between(start_date, end_date))
    return rule


async def remove_stop_sale(
    db: AsyncSession,
    stop_sale_id: int,
    actor: str = "system",
    cache: AvailabilityCache | None = None,
) -> None:
    """Delete a rule; its active log entries become "removed"."""
    rule = await db.get(StopSales, stop_sale_id)
    if rule is None:
        raise NotFound(f"Stop-sale {stop_sale_id} not found")

    tour_id = rule.tour_id
    start_date, end_date = rule.start_date, rule.end_date

    now = _utcnow()
    logs = await db.execute(
        select(StopSaleLogs).where(
            StopSaleLogs.stop_sale_id == stop_sale_id,
            StopSaleLogs.status == "active",
        )
    )
    for entry in logs.scalars():
        entry.status = "removed"
        entry.removed_by = actor
        entry.removed_at = now

    await db.delete(rule)
    await db.commit()
    logger.info(f"Stop-sale {stop_sale_id} removed: tour={tour_id} by={actor}")

    await invalidate_months(cache, tour_id, months_between(start_date, end_date))


async def list_stop_sales(db: AsyncSession, tour_id: int | None = None) -> list[StopSales]:
    q = select(StopSales)
    if tour_id is not None:
        q = q.where(StopSales.tour_id == tour_id)
    result = await db.execute(q.order_by(StopSales.start_date, StopSales.id))
    return list(result.scalars())


async def list_stop_sale_logs(
    db: AsyncSession,
    tour_id: int | None = None,
    status: str | None = None,
    limit: int = 50,
) -> list[StopSaleLogs]:
    q = select(StopSaleLogs)
    if tour_id is not None:
        q = q.where(StopSaleLogs.tour_id == tour_id)
    if status:
        q = q.where(StopSaleLogs.status == status)
    result = await db.execute(
        q.order_by(StopSaleLogs.applied_at.desc(), StopSaleLogs.id.desc())
        .limit(min(limit, 200))
    )
    return list(result.scalars())
