from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from db.client import session_scope
from db.models.recurring import RlTransaction
from sqlalchemy import update

from recurring_ledger import (
    RepairScope,
    create_recurring_template,
    delete_recurring_template,
    list_recurring_templates,
    refresh_recurring_templates,
    repair_duplicates,
    store,
    update_recurring_template,
)
from tests.helpers.db import instances_for, month_keys, seed_instance


def _snapshot(db_url: str, template_id: uuid.UUID) -> list[tuple[date, Decimal, str]]:
    with session_scope(database_url=db_url) as s:
        return [(r.date.date(), r.amount, r.status) for r in instances_for(s, template_id)]


def _count_in_month(db_url: str, template_id: uuid.UUID, key: tuple[int, int]) -> int:
    with session_scope(database_url=db_url) as s:
        return month_keys(instances_for(s, template_id)).count(key)


def test_e2e_rent_lifecycle(db_url):
    user = uuid.uuid4()

    # -------------------------
    # Mid-January: set up rent on the 31st
    # -------------------------
    view, created = create_recurring_template(
        {
            "user_id": user,
            "description": "Rent",
            "amount": "1200",
            "kind": "expense",
            "category": "Housing",
            "day_of_month": 31,
        },
        now=datetime(2024, 1, 15, 10),
        database_url=db_url,
    )
    assert len(created) == 24
    assert [i.date.date() for i in created[:4]] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
    ]
    assert created[-1].date.date() == date(2025, 12, 31)

    again = refresh_recurring_templates(now=datetime(2024, 1, 15, 11), database_url=db_url)
    assert (again.templates_processed, again.instances_created) == (1, 0)

    # -------------------------
    # January and February get paid
    # -------------------------
    with session_scope(database_url=db_url) as s:
        s.execute(
            update(RlTransaction)
            .where(RlTransaction.recurring_template_id == view.id)
            .where(RlTransaction.date < datetime(2024, 3, 1))
            .values(status="completed")
        )

    # -------------------------
    # March 1st: rent goes up
    # -------------------------
    update_recurring_template(
        view.id,
        {"amount": "1300"},
        date(2024, 3, 1),
        now=datetime(2024, 3, 1, 9),
        database_url=db_url,
    )
    snap = _snapshot(db_url, view.id)
    assert snap[:3] == [
        (date(2024, 1, 31), Decimal("1200.00"), "completed"),
        (date(2024, 2, 29), Decimal("1200.00"), "completed"),
        (date(2024, 3, 31), Decimal("1300.00"), "pending"),
    ]
    assert {amount for _, amount, _ in snap[2:]} == {Decimal("1300.00")}
    assert snap[-1][0] == date(2026, 2, 28)

    # -------------------------
    # A racing writer doubled April; repair converges
    # -------------------------
    with session_scope(database_url=db_url) as s:
        april = next(r for r in instances_for(s, view.id) if r.date.month == 4)
        seed_instance(
            s, store.get_template(s, view.id), april.date, created_at=datetime(2024, 3, 2)
        )
    assert _count_in_month(db_url, view.id, (2024, 4)) == 2

    report = repair_duplicates(RepairScope(user_id=user), database_url=db_url)
    assert (report.duplicate_groups, report.removed) == (1, 1)
    assert _count_in_month(db_url, view.id, (2024, 4)) == 1
    assert repair_duplicates(RepairScope(user_id=user), database_url=db_url).removed == 0

    # -------------------------
    # June 10th: moving out at the start of July
    # -------------------------
    retired = delete_recurring_template(
        view.id, date(2024, 7, 1), now=datetime(2024, 6, 10), database_url=db_url
    )
    assert retired.deactivated is False
    assert retired.end_date == datetime(2024, 7, 1)

    later = refresh_recurring_templates(now=datetime(2024, 7, 15), database_url=db_url)
    assert later.instances_created == 0
    final = _snapshot(db_url, view.id)
    assert [d for d, _, _ in final] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
        date(2024, 5, 31),
        date(2024, 6, 30),
    ]

    [listed] = list_recurring_templates(user, with_counts=True, database_url=db_url)
    assert listed.is_active is True
    assert listed.amount == Decimal("1300.00")
    assert listed.instance_count == 6