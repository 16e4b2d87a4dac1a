"""Public API for the ``recurring_ledger`` package.

Each function opens its own ``db.client.session_scope`` (``database_url``
overrides the ``DATABASE_URL`` environment variable) and delegates to the
engine in :mod:`recurring_ledger.reconcile` and :mod:`recurring_ledger.repair`.
User-initiated operations (create/update/delete) run as one transaction: any
error rolls everything back and propagates. Refresh and repair commit per
template/group and report isolated failures instead of raising.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from db.client import session_scope

from .generator import DEFAULT_HORIZON_YEARS
from .models import (
    RefreshReport,
    RepairReport,
    RepairScope,
    TemplateDraft,
    TemplatePatch,
    TransactionInstance,
)
from .reconcile import (
    Retirement,
    create_template,
    list_templates,
    on_periodic_refresh,
    on_template_delete,
    on_template_update,
)
from .repair import repair, repair_active_templates
from .store import count_instances


@dataclass(frozen=True, slots=True)
class TemplateView:
    """Detached snapshot of a template row, safe to use after the session closes."""

    id: uuid.UUID
    user_id: uuid.UUID
    description: str
    amount: Decimal
    kind: str
    category: str
    day_of_month: int
    is_active: bool
    start_date: datetime | None
    end_date: datetime | None
    created_at: datetime
    updated_at: datetime
    instance_count: int | None = None

    @classmethod
    def from_row(cls, row: Any, *, instance_count: int | None = None) -> TemplateView:
        return cls(
            id=row.id,
            user_id=row.user_id,
            description=row.description,
            amount=row.amount,
            kind=row.kind,
            category=row.category,
            day_of_month=row.day_of_month,
            is_active=bool(row.is_active),
            start_date=row.start_date,
            end_date=row.end_date,
            created_at=row.created_at,
            updated_at=row.updated_at,
            instance_count=instance_count,
        )


def create_recurring_template(
    draft: TemplateDraft | Mapping[str, Any],
    *,
    start_month: date | datetime | None = None,
    recurring: bool = True,
    now: datetime | None = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
    database_url: str | None = None,
) -> tuple[TemplateView, list[TransactionInstance]]:
    with session_scope(database_url=database_url) as session:
        row, instances = create_template(
            session,
            draft,
            start_month=start_month,
            recurring=recurring,
            now=now,
            horizon_years=horizon_years,
        )
        return TemplateView.from_row(row), instances


def update_recurring_template(
    template_id: uuid.UUID,
    field_changes: TemplatePatch | Mapping[str, Any],
    effective_date: date | datetime | None = None,
    *,
    now: datetime | None = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
    database_url: str | None = None,
) -> list[TransactionInstance]:
    with session_scope(database_url=database_url) as session:
        return on_template_update(
            session,
            template_id,
            field_changes,
            effective_date,
            now=now,
            horizon_years=horizon_years,
        )


def delete_recurring_template(
    template_id: uuid.UUID,
    effective_date: date | datetime | None = None,
    *,
    now: datetime | None = None,
    database_url: str | None = None,
) -> Retirement:
    with session_scope(database_url=database_url) as session:
        return on_template_delete(session, template_id, effective_date, now=now)


def refresh_recurring_templates(
    *,
    now: datetime | None = None,
    horizon_years: int = DEFAULT_HORIZON_YEARS,
    database_url: str | None = None,
) -> RefreshReport:
    """Entry point for the periodic trigger (cron, scheduler, CLI ``refresh``)."""

    with session_scope(database_url=database_url) as session:
        return on_periodic_refresh(session, now=now, horizon_years=horizon_years)


def repair_duplicates(
    scope: RepairScope,
    *,
    database_url: str | None = None,
) -> RepairReport:
    with session_scope(database_url=database_url) as session:
        return repair(session, scope)


def repair_all_active(*, database_url: str | None = None) -> RepairReport:
    with session_scope(database_url=database_url) as session:
        return repair_active_templates(session)


def list_recurring_templates(
    user_id: uuid.UUID,
    *,
    include_inactive: bool = False,
    with_counts: bool = False,
    database_url: str | None = None,
) -> list[TemplateView]:
    with session_scope(database_url=database_url) as session:
        rows = list_templates(session, user_id, include_inactive=include_inactive)
        return [
            TemplateView.from_row(
                row,
                instance_count=count_instances(session, row.id) if with_counts else None,
            )
            for row in rows
        ]


__all__ = [
    "TemplateView",
    "create_recurring_template",
    "update_recurring_template",
    "delete_recurring_template",
    "refresh_recurring_templates",
    "repair_duplicates",
    "repair_all_active",
    "list_recurring_templates",
]
