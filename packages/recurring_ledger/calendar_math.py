"""Calendar arithmetic for monthly materialization.

All values are naive datetimes on the local calendar. Materialized dates are
anchored at noon so that a round trip through a UTC-normalizing store never
moves them across a day boundary.

Clamp-down policy: a nominal day that does not exist in a month resolves to
that month's last day (31 -> Feb 28/29, Apr 30), never rolling into the next
month.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time

ANCHOR_HOUR = 12


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def anchored_date(year: int, month: int, day: int) -> datetime:
    """Return ``day`` of ``month``/``year`` at noon, clamped to the month's last day."""

    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {month}")
    if day < 1:
        raise ValueError(f"day must be >= 1: {day}")
    return datetime(year, month, min(day, days_in_month(year, month)), ANCHOR_HOUR)


def month_window_bounds(value: date | datetime) -> tuple[datetime, datetime]:
    """Return the first and last instant (23:59:59) of the month containing ``value``."""

    first = datetime(value.year, value.month, 1)
    last = datetime(value.year, value.month, days_in_month(value.year, value.month), 23, 59, 59)
    return first, last


def step_month(value: datetime, nominal_day: int | None = None) -> datetime:
    """Advance one calendar month, re-resolving ``nominal_day`` with clamp-down.

    Without ``nominal_day`` the day of ``value`` is used, which loses the
    original request after a clamp (Jan 31 -> Feb 29 -> Mar 29). Pass the
    template's day-of-month to keep Jan 31 -> Feb 29 -> Mar 31.
    """

    day = nominal_day if nominal_day is not None else value.day
    year, month = (value.year + 1, 1) if value.month == 12 else (value.year, value.month + 1)
    resolved = min(day, days_in_month(year, month))
    return value.replace(year=year, month=month, day=resolved)


def add_years(value: datetime, years: int) -> datetime:
    """Shift by whole years; Feb 29 lands on Feb 28 in non-leap targets."""

    year = value.year + years
    day = min(value.day, days_in_month(year, value.month))
    return value.replace(year=year, day=day)


def start_of_day(value: date | datetime) -> datetime:
    return datetime.combine(
        value.date() if isinstance(value, datetime) else value, time.min
    )


def as_datetime(value: date | datetime) -> datetime:
    """Promote a bare ``date`` to midnight; datetimes pass through unchanged."""

    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


__all__ = [
    "ANCHOR_HOUR",
    "days_in_month",
    "anchored_date",
    "month_window_bounds",
    "step_month",
    "add_years",
    "start_of_day",
    "as_datetime",
]
