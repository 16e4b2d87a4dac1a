"""Duplicate repair: converge to one instance per (template, calendar month).

Concurrent generation can pass the existence probe twice for the same month.
This pass is the standing corrective: within a scope, every
(template, year, month) group with more than one instance keeps its first
member in ``(date, created_at, id)`` order and deletes the rest.

Status is not consulted when picking the survivor, so a completed duplicate
that sorts after a pending one is removed. Running the pass twice yields the
same surviving set.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from itertools import groupby
from typing import TypeAlias

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.recurring import RlTransaction
from . import store
from .errors import RecurringError
from .logging_setup import get_logger
from .models import RepairReport, RepairScope

_logger = get_logger("recurring_ledger.repair")

GroupKey: TypeAlias = tuple[uuid.UUID, int, int]


def _group_key(tx: RlTransaction) -> GroupKey:
    assert tx.recurring_template_id is not None  # orphans filtered by the query
    return tx.recurring_template_id, tx.date.year, tx.date.month


def plan_removals(instances: Iterable[RlTransaction]) -> dict[GroupKey, list[uuid.UUID]]:
    """Map each over-full group to the ids that should be deleted.

    ``instances`` must already be in repair order (template, date, created_at,
    id); the first member of each group is the survivor.
    """

    plan: dict[GroupKey, list[uuid.UUID]] = {}
    # Sorting by key is stable, so members keep their persisted order
    for key, members in groupby(sorted(instances, key=_group_key), key=_group_key):
        ids = [m.id for m in members]
        if len(ids) > 1:
            plan[key] = ids[1:]
    return plan


def repair(session: Session, scope: RepairScope) -> RepairReport:
    """Remove duplicate instances within ``scope`` and commit per group.

    A failing group is rolled back, logged, recorded in the report and
    skipped; the remaining groups are still processed.
    """

    report = RepairReport()
    instances = store.list_recurring_instances(
        session, user_id=scope.user_id, template_id=scope.template_id
    )
    report.groups_examined = len({_group_key(tx) for tx in instances})
    plan = plan_removals(instances)
    report.duplicate_groups = len(plan)

    for (template_id, year, month), ids in plan.items():
        label = f"{template_id}:{year:04d}-{month:02d}"
        try:
            removed = store.delete_instances(session, ids)
            session.commit()
        except (RecurringError, SQLAlchemyError) as e:
            session.rollback()
            _logger.error(
                "repair:group_failed group=%s error=%s: %s", label, e.__class__.__name__, e
            )
            report.failures.append((label, str(e)))
            continue
        report.removed += removed
        _logger.info("repair:group_done group=%s removed=%d", label, removed)

    return report


def repair_active_templates(session: Session) -> RepairReport:
    """Run :func:`repair` once per active template and merge the reports."""

    total = RepairReport()
    for template_id in [t.id for t in store.list_active_templates(session)]:
        total.merge(repair(session, RepairScope(template_id=template_id)))
    _logger.info(
        "repair:active_done groups=%d duplicate_groups=%d removed=%d failed=%d",
        total.groups_examined,
        total.duplicate_groups,
        total.removed,
        len(total.failures),
    )
    return total


__all__ = [
    "plan_removals",
    "repair",
    "repair_active_templates",
]
