from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest
from db.client import get_session

import recurring_ledger.reconcile as reconcile_mod
from recurring_ledger import (
    NotFoundError,
    RepairScope,
    StoreError,
    TemplateDraft,
    ValidationError,
    create_recurring_template,
    delete_recurring_template,
    list_recurring_templates,
    refresh_recurring_templates,
    repair_all_active,
    repair_duplicates,
    store,
    update_recurring_template,
)
from tests.helpers.db import instances_for, seed_instance

JAN_15 = datetime(2024, 1, 15, 9, 0)


def _draft(user_id: uuid.UUID, **overrides) -> dict:
    base = {
        "user_id": user_id,
        "description": "Rent",
        "amount": "1200.00",
        "kind": "expense",
        "category": "Housing",
        "day_of_month": 31,
    }
    base.update(overrides)
    return base


def _read(db_url: str, template_id: uuid.UUID):
    s = get_session(database_url=db_url)
    try:
        return instances_for(s, template_id)
    finally:
        s.close()


def test_missing_database_url_is_a_runtime_error():
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        refresh_recurring_templates(now=JAN_15)


def test_database_url_falls_back_to_environment(db_url, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", db_url)
    view, instances = create_recurring_template(_draft(uuid.uuid4()), now=JAN_15)
    assert len(instances) == 24
    assert len(_read(db_url, view.id)) == 24


def test_create_returns_detached_view(db_url):
    user = uuid.uuid4()
    view, instances = create_recurring_template(
        TemplateDraft(**_draft(user)), now=JAN_15, database_url=db_url
    )

    assert view.user_id == user
    assert view.is_active is True
    assert view.amount == Decimal("1200.00")
    assert view.start_date == datetime(2024, 1, 1)
    assert view.end_date is None
    assert view.instance_count is None
    assert instances[0].date == datetime(2024, 1, 31, 12, 0)


def test_update_failure_rolls_back_everything(db_url, monkeypatch):
    view, _ = create_recurring_template(_draft(uuid.uuid4()), now=JAN_15, database_url=db_url)

    def _boom(*_a, **_kw):
        raise StoreError("insert failed")

    monkeypatch.setattr(reconcile_mod, "generate", _boom)
    with pytest.raises(StoreError):
        update_recurring_template(
            view.id,
            {"amount": "1500"},
            datetime(2024, 3, 1),
            now=datetime(2024, 3, 1),
            database_url=db_url,
        )

    rows = _read(db_url, view.id)
    assert len(rows) == 24
    assert {r.amount for r in rows} == {Decimal("1200.00")}
    [listed] = list_recurring_templates(view.user_id, database_url=db_url)
    assert listed.amount == Decimal("1200.00")


def test_update_and_delete_errors_propagate(db_url):
    with pytest.raises(NotFoundError):
        update_recurring_template(uuid.uuid4(), {"amount": "1"}, database_url=db_url)
    with pytest.raises(NotFoundError):
        delete_recurring_template(uuid.uuid4(), database_url=db_url)
    with pytest.raises(ValidationError):
        update_recurring_template(uuid.uuid4(), {"is_active": True}, database_url=db_url)


def test_update_then_delete_round(db_url):
    view, _ = create_recurring_template(_draft(uuid.uuid4()), now=JAN_15, database_url=db_url)

    created = update_recurring_template(
        view.id,
        {"description": "Rent (new lease)"},
        date(2024, 7, 1),
        now=datetime(2024, 6, 20),
        database_url=db_url,
    )
    assert created[0].date == datetime(2024, 7, 31, 12, 0)
    assert {i.description for i in created} == {"Rent (new lease)"}

    retired = delete_recurring_template(
        view.id, date(2024, 6, 19), now=datetime(2024, 6, 20), database_url=db_url
    )
    assert retired.deactivated is True
    assert [(r.date.month, r.description) for r in _read(db_url, view.id)] == [
        (1, "Rent"),
        (2, "Rent"),
        (3, "Rent"),
        (4, "Rent"),
        (5, "Rent"),
    ]
    assert list_recurring_templates(view.user_id, database_url=db_url) == []
    [inactive] = list_recurring_templates(view.user_id, include_inactive=True, database_url=db_url)
    assert inactive.is_active is False


def test_refresh_and_repair_entry_points(db_url):
    user = uuid.uuid4()
    view, _ = create_recurring_template(_draft(user), now=JAN_15, database_url=db_url)

    assert refresh_recurring_templates(now=JAN_15, database_url=db_url).instances_created == 0

    s = get_session(database_url=db_url)
    try:
        [first, *_] = instances_for(s, view.id)
        tpl = store.get_template(s, view.id)
        seed_instance(s, tpl, first.date, created_at=datetime(2024, 1, 16))
    finally:
        s.close()

    [counted] = list_recurring_templates(user, with_counts=True, database_url=db_url)
    assert counted.instance_count == 25

    report = repair_duplicates(RepairScope(user_id=user), database_url=db_url)
    assert (report.duplicate_groups, report.removed) == (1, 1)
    assert repair_all_active(database_url=db_url).removed == 0
    assert len(_read(db_url, view.id)) == 24
