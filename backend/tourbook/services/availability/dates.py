# backend/tourbook/services/availability/dates.py
"""
Calendar helpers: month parsing, month bounds, day iteration.

Weekday indexes follow the 0 = Sunday convention used by tour templates.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator

from ...errors import InvalidInput

MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month(value: str | None) -> tuple[int, int]:
    """
    Parse "YYYY-MM" into (year, month).

    Raises:
        InvalidInput: missing or malformed value.
    """
    if not value:
        raise InvalidInput("Month parameter is required")

    match = MONTH_RE.match(value.strip())
    if not match:
        raise InvalidInput(f"Invalid month '{value}', expected YYYY-MM")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidInput(f"Invalid month '{value}', expected YYYY-MM")

    return year, month


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """
    First and last instant of a month, UTC.

    Returns:
        (YYYY-MM-01T00:00:00.000Z, YYYY-MM-<last>T23:59:59.999Z)
    """
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime.combine(
        date(year, month, last_day),
        time(23, 59, 59, 999000),
        tzinfo=timezone.utc,
    )
    return start, end


def iter_days(first: date, last: date) -> Iterator[date]:
    """Yield each calendar date in [first, last], in order."""
    if isinstance(first, datetime):
        first = first.date()
    if isinstance(last, datetime):
        last = last.date()

    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)


def weekday_index(day: date) -> int:
    """0 = Sunday … 6 = Saturday."""
    return (day.weekday() + 1) % 7


def months_between(first: date, last: date) -> list[str]:
    """
    "YYYY-MM" keys touched by [first, last].

    Used to find which cached months a change affects.
    """
    if first > last:
        first, last = last, first

    keys = []
    year, month = first.year, first.month
    while (year, month) <= (last.year, last.month):
        keys.append(month_key(year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys
