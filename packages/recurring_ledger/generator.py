"""Expand a recurring template over a window into its missing monthly instances.

The generator never writes. It asks an existence oracle whether a month is
already occupied and returns value copies for the months that are not; the
reconciler decides when and how to persist them.

Window semantics
----------------
- The lower bound is ``window_start`` raised to ``template.start_date`` and is
  month-granular: the month containing it is always considered, even when the
  template's day already passed in that month (a template created on the 15th
  still owes the 5th).
- The upper bound is ``window_end`` capped by ``template.end_date``; a month is
  emitted only when its anchored date is on or before that bound.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TypeAlias

from .calendar_math import anchored_date, step_month
from .logging_setup import get_logger
from .models import TemplateLike, TransactionInstance

DEFAULT_HORIZON_YEARS = 2

ExistsFn: TypeAlias = Callable[[uuid.UUID, datetime], bool]

_logger = get_logger("recurring_ledger.generator")


def effective_lower_bound(template: TemplateLike, window_start: datetime) -> datetime:
    if template.start_date is not None and template.start_date > window_start:
        return template.start_date
    return window_start


def effective_upper_bound(template: TemplateLike, window_end: datetime) -> datetime:
    if template.end_date is not None and template.end_date < window_end:
        return template.end_date
    return window_end


def generate(
    template: TemplateLike,
    window_start: datetime,
    window_end: datetime,
    *,
    exists: ExistsFn,
) -> list[TransactionInstance]:
    """Return the template's missing instances in ``[window_start, window_end]``.

    Parameters
    ----------
    template:
        Source template (ORM row or any object with the same attributes).
    window_start, window_end:
        Materialization window. ``window_start > window_end`` yields ``[]``.
    exists:
        Oracle ``(template_id, any_date_in_month) -> bool``; a month for which
        it returns ``True`` is skipped.

    Returns
    -------
    list[TransactionInstance]
        Pending instances in ascending date order, one per uncovered month.
    """

    if window_start > window_end:
        return []

    lower = effective_lower_bound(template, window_start)
    upper = effective_upper_bound(template, window_end)
    day = template.day_of_month
    out: list[TransactionInstance] = []
    skipped = 0

    cursor = anchored_date(lower.year, lower.month, day)
    while cursor <= upper:
        if exists(template.id, cursor):
            skipped += 1
        else:
            out.append(TransactionInstance.from_template(template, cursor))
        cursor = step_month(cursor, day)

    _logger.debug(
        "generate:done template_id=%s window=%s..%s emitted=%d skipped=%d",
        template.id,
        lower.date().isoformat(),
        upper.date().isoformat(),
        len(out),
        skipped,
    )
    return out


__all__ = [
    "DEFAULT_HORIZON_YEARS",
    "ExistsFn",
    "effective_lower_bound",
    "effective_upper_bound",
    "generate",
]
