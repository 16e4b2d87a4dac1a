"""Reconcile templates with their materialized instances.

Entry points
------------
- :func:`create_template`: insert a template and materialize it from a start
  month (or a single month for one-off templates).
- :func:`on_template_update`: patch a template, drop pending instances at/after
  the effective date and regenerate from there.
- :func:`on_template_delete`: drop pending instances at/after the effective
  date, then deactivate now or schedule an ``end_date`` cutoff.
- :func:`on_periodic_refresh`: top up every active template up to its
  ``end_date`` (or the rolling horizon), isolating failures per template.

All entry points take an open ``Session``. Update/delete/create leave commit
or rollback to the caller, so errors surface with nothing half-applied when
run inside ``db.client.session_scope``. Refresh commits per template.

Retroactivity guarantee: completed instances, and pending instances dated
strictly before the effective date, are never deleted or rewritten here.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from functools import partial
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.recurring import RlRecurringTemplate
from . import store
from .calendar_math import add_years, as_datetime, month_window_bounds, start_of_day
from .errors import RecurringError
from .generator import DEFAULT_HORIZON_YEARS, ExistsFn, generate
from .logging_setup import get_logger
from .models import (
    RefreshReport,
    TemplateDraft,
    TemplatePatch,
    TransactionInstance,
    validate_draft,
    validate_patch,
)

_logger = get_logger("recurring_ledger.reconcile")


@dataclass(frozen=True, slots=True)
class Retirement:
    """Outcome of :func:`on_template_delete`."""

    template_id: uuid.UUID
    removed: int
    deactivated: bool
    end_date: datetime | None


def _resolve_now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now()


def _oracle(session: Session) -> ExistsFn:
    return partial(store.instance_exists_in_month, session)


def _materialize(
    session: Session,
    template: RlRecurringTemplate,
    window_start: datetime,
    window_end: datetime,
    *,
    now: datetime,
) -> list[TransactionInstance]:
    instances = generate(template, window_start, window_end, exists=_oracle(session))
    store.insert_instances(session, instances, now=now)
    return instances


def create_template(
    session: Session,
    draft: TemplateDraft | Mapping[str, Any],
    *,
    start_month: date | datetime | None = None,
    recurring: bool = True,
    now: datetime | None = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
) -> tuple[RlRecurringTemplate, list[TransactionInstance]]:
    """Create an active template and materialize its instances.

    ``start_month`` (any day inside it; default: the current month) is the
    first month to materialize. It is stored as ``start_date`` so later
    refreshes never backfill before it. With ``recurring=False`` the template
    is a one-off: ``end_date`` is set to the last instant of the start month so
    exactly that month is generated and later refreshes add nothing.
    """

    now = _resolve_now(now)
    valid = validate_draft(draft)
    month_start, month_end = month_window_bounds(
        as_datetime(start_month) if start_month is not None else now
    )
    if not recurring:
        valid = valid.model_copy(update={"end_date": month_end})

    template = store.insert_template(session, valid, now=now, start_date=month_start)
    instances = _materialize(
        session, template, month_start, add_years(now, horizon_years), now=now
    )
    _logger.info(
        "create:done template_id=%s start=%s recurring=%s created=%d",
        template.id,
        month_start.date().isoformat(),
        recurring,
        len(instances),
    )
    return template, instances


def on_template_update(
    session: Session,
    template_id: uuid.UUID,
    field_changes: TemplatePatch | Mapping[str, Any],
    effective_date: date | datetime | None = None,
    *,
    now: datetime | None = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
) -> list[TransactionInstance]:
    """Apply ``field_changes`` and regenerate pending instances from ``effective_date``.

    Steps, strictly in order:

    1. Validate and persist the field-level patch (bumps ``updated_at``).
    2. Delete the template's pending instances dated at/after ``effective_date``.
    3. Re-fetch the updated template.
    4. Generate over ``[effective_date, effective_date + horizon]`` (capped by
       ``end_date``).
    5. Insert the new instances in one batch.

    Returns the newly generated instances. Inactive templates are patched and
    cleaned but not regenerated.
    """

    now = _resolve_now(now)
    effective = as_datetime(effective_date) if effective_date is not None else now
    patch = validate_patch(field_changes)

    store.template_lock(session, template_id)
    store.update_template(session, template_id, patch.changes(), now=now)
    removed = store.delete_pending_from(session, template_id, effective)
    template = store.get_template(session, template_id)

    if not template.is_active:
        _logger.warning(
            "update:inactive template_id=%s removed=%d; skipping regeneration",
            template_id,
            removed,
        )
        return []

    instances = _materialize(
        session, template, effective, add_years(effective, horizon_years), now=now
    )
    _logger.info(
        "update:done template_id=%s fields=%s effective=%s removed=%d created=%d",
        template_id,
        ",".join(sorted(patch.changes())) or "-",
        effective.isoformat(),
        removed,
        len(instances),
    )
    return instances


def on_template_delete(
    session: Session,
    template_id: uuid.UUID,
    effective_date: date | datetime | None = None,
    *,
    now: datetime | None = None,
) -> Retirement:
    """Retire a template from ``effective_date`` on.

    Pending instances at/after the effective date are deleted first. Then, by
    calendar day: an effective date on or before today deactivates the template
    immediately; a later one stores it as ``end_date`` and keeps the template
    active so months before the cutoff are still materialized.
    """

    now = _resolve_now(now)
    effective = as_datetime(effective_date) if effective_date is not None else now

    store.template_lock(session, template_id)
    removed = store.delete_pending_from(session, template_id, effective)

    if start_of_day(effective) <= start_of_day(now):
        store.update_template(session, template_id, {"is_active": False}, now=now)
        result = Retirement(template_id, removed, deactivated=True, end_date=None)
    else:
        store.update_template(session, template_id, {"end_date": effective}, now=now)
        result = Retirement(template_id, removed, deactivated=False, end_date=effective)

    _logger.info(
        "delete:done template_id=%s effective=%s removed=%d deactivated=%s",
        template_id,
        effective.isoformat(),
        removed,
        result.deactivated,
    )
    return result


def on_periodic_refresh(
    session: Session,
    *,
    now: datetime | None = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
) -> RefreshReport:
    """Materialize missing instances for every active template.

    The window runs from ``now`` to the template's ``end_date`` when one is set
    (however far out), otherwise to ``now`` plus the rolling horizon.

    Each template runs in its own transaction: success commits, failure rolls
    back, is logged and recorded in the report, and the loop moves on.
    A failure to list the templates themselves propagates.
    """

    now = _resolve_now(now)
    report = RefreshReport()
    template_ids = [t.id for t in store.list_active_templates(session)]
    horizon_end = add_years(now, horizon_years)

    for template_id in template_ids:
        try:
            store.template_lock(session, template_id)
            template = store.get_template(session, template_id)
            created: list[TransactionInstance] = []
            if template.is_active:
                window_end = template.end_date if template.end_date is not None else horizon_end
                created = _materialize(session, template, now, window_end, now=now)
            session.commit()
        except (RecurringError, SQLAlchemyError) as e:
            session.rollback()
            _logger.error(
                "refresh:template_failed template_id=%s error=%s: %s",
                template_id,
                e.__class__.__name__,
                e,
            )
            report.failures.append((template_id, str(e)))
            continue

        report.templates_processed += 1
        report.instances_created += len(created)
        if created:
            _logger.info(
                "refresh:template_done template_id=%s created=%d", template_id, len(created)
            )

    _logger.info(
        "refresh:done templates=%d created=%d failed=%d",
        report.templates_processed,
        report.instances_created,
        len(report.failures),
    )
    return report


def list_templates(
    session: Session,
    user_id: uuid.UUID,
    *,
    include_inactive: bool = False,
) -> list[RlRecurringTemplate]:
    return store.list_user_templates(session, user_id, include_inactive=include_inactive)


__all__ = [
    "Retirement",
    "create_template",
    "on_template_update",
    "on_template_delete",
    "on_periodic_refresh",
    "list_templates",
]
