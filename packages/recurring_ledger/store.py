# ruff: noqa: I001
"""Store contract for the materialization engine.

Functions here read and write the ``rl_recurring_templates`` and
``rl_transactions`` tables owned by ``libs/db``. Every function takes an
active SQLAlchemy ``Session``; callers own the transaction scope (commit or
rollback). SQLAlchemy failures are re-raised as
:class:`~recurring_ledger.errors.StoreError`.

Scope:
- Template insert/patch/fetch/listing.
- Instance batch insert and deletes (pending-from-date, by id).
- The per-month existence probe used to de-duplicate generation.
- An optional per-template advisory lock (PostgreSQL only).
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models.recurring import RlRecurringTemplate, RlTransaction
from .calendar_math import month_window_bounds
from .errors import NotFoundError, StoreError
from .models import STATUS_PENDING, TemplateDraft, TransactionInstance


@contextmanager
def _store_op(op: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        raise StoreError(f"{op} failed: {e}") from e


# ---------------------------
# Templates
# ---------------------------


def insert_template(
    session: Session,
    draft: TemplateDraft,
    *,
    now: datetime,
    start_date: datetime | None = None,
) -> RlRecurringTemplate:
    """Insert a new active template and return the flushed row."""

    row = RlRecurringTemplate(
        user_id=draft.user_id,
        description=draft.description,
        amount=draft.amount,
        kind=draft.kind,
        category=draft.category,
        day_of_month=draft.day_of_month,
        is_active=True,
        start_date=start_date,
        end_date=draft.end_date,
        created_at=now,
        updated_at=now,
    )
    with _store_op("insert_template"):
        session.add(row)
        session.flush()
    return row


def get_template(session: Session, template_id: uuid.UUID) -> RlRecurringTemplate:
    """Fetch one template; raise ``NotFoundError`` when absent.

    Always reads through to the database so a preceding bulk ``UPDATE`` is
    reflected in the returned object.
    """

    with _store_op("get_template"):
        row = session.execute(
            select(RlRecurringTemplate)
            .where(RlRecurringTemplate.id == template_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
    if row is None:
        raise NotFoundError(f"recurring template not found: {template_id}")
    return row


def update_template(
    session: Session,
    template_id: uuid.UUID,
    patch: Mapping[str, Any],
    *,
    now: datetime,
) -> None:
    """Apply a field-level patch and bump ``updated_at``.

    Raises ``NotFoundError`` when no row matches ``template_id``.
    """

    values = dict(patch)
    values["updated_at"] = now
    with _store_op("update_template"):
        result = session.execute(
            update(RlRecurringTemplate)
            .where(RlRecurringTemplate.id == template_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
    if result.rowcount == 0:
        raise NotFoundError(f"recurring template not found: {template_id}")


def list_active_templates(session: Session) -> list[RlRecurringTemplate]:
    with _store_op("list_active_templates"):
        return list(
            session.execute(
                select(RlRecurringTemplate)
                .where(RlRecurringTemplate.is_active.is_(True))
                .order_by(RlRecurringTemplate.created_at, RlRecurringTemplate.id)
            ).scalars()
        )


def list_user_templates(
    session: Session,
    user_id: uuid.UUID,
    *,
    include_inactive: bool = False,
) -> list[RlRecurringTemplate]:
    """Return a user's templates, newest first."""

    stmt = select(RlRecurringTemplate).where(RlRecurringTemplate.user_id == user_id)
    if not include_inactive:
        stmt = stmt.where(RlRecurringTemplate.is_active.is_(True))
    stmt = stmt.order_by(RlRecurringTemplate.created_at.desc(), RlRecurringTemplate.id)
    with _store_op("list_user_templates"):
        return list(session.execute(stmt).scalars())


# ---------------------------
# Instances
# ---------------------------


def instance_exists_in_month(
    session: Session,
    template_id: uuid.UUID,
    any_date_in_month: date | datetime,
) -> bool:
    """True iff ≥1 instance references ``template_id`` within that calendar month.

    Status is ignored: a completed instance also occupies its month.
    """

    month_start, month_end = month_window_bounds(any_date_in_month)
    stmt = (
        select(RlTransaction.id)
        .where(RlTransaction.recurring_template_id == template_id)
        .where(RlTransaction.date >= month_start)
        .where(RlTransaction.date <= month_end)
        .limit(1)
    )
    with _store_op("instance_exists_in_month"):
        return session.execute(stmt).first() is not None


def insert_instances(
    session: Session,
    instances: Iterable[TransactionInstance],
    *,
    now: datetime,
) -> int:
    """Insert materialized instances in one batched statement; return the count."""

    payloads: list[dict[str, Any]] = []
    for inst in instances:
        row = inst.to_row()
        row["id"] = uuid.uuid4()
        row["created_at"] = now
        row["updated_at"] = now
        payloads.append(row)
    if not payloads:
        return 0
    with _store_op("insert_instances"):
        session.execute(insert(RlTransaction), payloads)
    return len(payloads)


def delete_pending_from(
    session: Session,
    template_id: uuid.UUID,
    from_date: datetime,
) -> int:
    """Delete pending instances of a template dated at/after ``from_date``.

    Completed instances and anything dated strictly before ``from_date`` are
    never touched.
    """

    stmt = (
        delete(RlTransaction)
        .where(RlTransaction.recurring_template_id == template_id)
        .where(RlTransaction.status == STATUS_PENDING)
        .where(RlTransaction.date >= from_date)
        .execution_options(synchronize_session=False)
    )
    with _store_op("delete_pending_from"):
        return session.execute(stmt).rowcount


def delete_instances(session: Session, ids: Sequence[uuid.UUID]) -> int:
    if not ids:
        return 0
    stmt = (
        delete(RlTransaction)
        .where(RlTransaction.id.in_(list(ids)))
        .execution_options(synchronize_session=False)
    )
    with _store_op("delete_instances"):
        return session.execute(stmt).rowcount


def list_recurring_instances(
    session: Session,
    *,
    user_id: uuid.UUID | None = None,
    template_id: uuid.UUID | None = None,
) -> list[RlTransaction]:
    """Instances carrying a template reference, in repair order.

    Order: template, date, creation time, id. Orphans (NULL reference) are
    excluded.
    """

    stmt = select(RlTransaction).where(RlTransaction.recurring_template_id.is_not(None))
    if user_id is not None:
        stmt = stmt.where(RlTransaction.user_id == user_id)
    if template_id is not None:
        stmt = stmt.where(RlTransaction.recurring_template_id == template_id)
    stmt = stmt.order_by(
        RlTransaction.recurring_template_id,
        RlTransaction.date,
        RlTransaction.created_at,
        RlTransaction.id,
    )
    with _store_op("list_recurring_instances"):
        return list(session.execute(stmt).scalars())


# ---------------------------
# Serialization
# ---------------------------


def template_lock(session: Session, template_id: uuid.UUID) -> None:
    """Serialize generation per template for the rest of the transaction.

    PostgreSQL: ``pg_advisory_xact_lock`` keyed by the template id, released
    at commit/rollback. Other dialects: no-op; uniqueness there is eventual and
    converges through the duplicate repair pass.
    """

    if session.get_bind().dialect.name != "postgresql":
        return
    with _store_op("template_lock"):
        session.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": str(template_id)},
        )


def count_instances(session: Session, template_id: uuid.UUID) -> int:
    with _store_op("count_instances"):
        return session.execute(
            select(func.count())
            .select_from(RlTransaction)
            .where(RlTransaction.recurring_template_id == template_id)
        ).scalar_one()


__all__ = [
    "insert_template",
    "get_template",
    "update_template",
    "list_active_templates",
    "list_user_templates",
    "instance_exists_in_month",
    "insert_instances",
    "delete_pending_from",
    "delete_instances",
    "list_recurring_instances",
    "template_lock",
    "count_instances",
]
