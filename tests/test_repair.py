from __future__ import annotations

import uuid
from datetime import datetime

import pytest

from recurring_ledger import store
from recurring_ledger.errors import StoreError, ValidationError
from recurring_ledger.models import RepairScope
from recurring_ledger.repair import plan_removals, repair, repair_active_templates
from tests.helpers.db import instances_for, month_keys, seed_instance, seed_template


def _created(day: int) -> datetime:
    return datetime(2024, 1, day, 9, 0)


def test_repair_scope_requires_exactly_one_selector():
    with pytest.raises(ValidationError):
        RepairScope()
    with pytest.raises(ValidationError):
        RepairScope(user_id=uuid.uuid4(), template_id=uuid.uuid4())
    assert RepairScope(user_id=uuid.uuid4()).template_id is None


def test_five_duplicates_converge_to_the_earliest(session):
    tpl = seed_template(session, user_id=uuid.uuid4())
    seed_instance(session, tpl, datetime(2024, 3, 31, 12), created_at=_created(2))
    seed_instance(session, tpl, datetime(2024, 3, 31, 12), created_at=_created(1))
    survivor = seed_instance(session, tpl, datetime(2024, 3, 30, 12), created_at=_created(5))
    seed_instance(session, tpl, datetime(2024, 3, 31, 12), created_at=_created(3))
    seed_instance(session, tpl, datetime(2024, 3, 31, 12), created_at=_created(4))
    other_month = seed_instance(session, tpl, datetime(2024, 4, 30, 12))

    report = repair(session, RepairScope(template_id=tpl.id))

    assert (report.groups_examined, report.duplicate_groups, report.removed) == (2, 1, 4)
    assert report.failures == []
    assert [r.id for r in instances_for(session, tpl.id)] == [survivor.id, other_month.id]

    again = repair(session, RepairScope(template_id=tpl.id))
    assert (again.duplicate_groups, again.removed) == (0, 0)
    assert [r.id for r in instances_for(session, tpl.id)] == [survivor.id, other_month.id]


def test_same_date_ties_break_on_creation_time(session):
    tpl = seed_template(session, user_id=uuid.uuid4())
    later = seed_instance(session, tpl, datetime(2024, 5, 31, 12), created_at=_created(9))
    earlier = seed_instance(session, tpl, datetime(2024, 5, 31, 12), created_at=_created(8))

    assert list(plan_removals(instances_for(session, tpl.id)).values()) == [[later.id]]
    repair(session, RepairScope(template_id=tpl.id))
    assert [r.id for r in instances_for(session, tpl.id)] == [earlier.id]


def test_status_is_not_consulted_when_picking_the_survivor(session):
    tpl = seed_template(session, user_id=uuid.uuid4())
    pending = seed_instance(session, tpl, datetime(2024, 6, 10, 12))
    seed_instance(session, tpl, datetime(2024, 6, 30, 12), status="completed")

    report = repair(session, RepairScope(template_id=tpl.id))

    assert report.removed == 1
    rows = instances_for(session, tpl.id)
    assert [(r.id, r.status) for r in rows] == [(pending.id, "pending")]


def test_user_scope_spans_templates_and_skips_other_users_and_orphans(session):
    me, other = uuid.uuid4(), uuid.uuid4()
    rent = seed_template(session, user_id=me)
    gym = seed_template(session, user_id=me, description="Gym", day_of_month=5)
    theirs = seed_template(session, user_id=other)
    for tpl, when in ((rent, datetime(2024, 2, 29, 12)), (gym, datetime(2024, 2, 5, 12))):
        seed_instance(session, tpl, when)
        seed_instance(session, tpl, when)
    seed_instance(session, theirs, datetime(2024, 2, 29, 12))
    seed_instance(session, theirs, datetime(2024, 2, 29, 12))
    # Two manual entries in the same month are never grouped
    seed_instance(session, None, datetime(2024, 2, 10, 12), user_id=me)
    seed_instance(session, None, datetime(2024, 2, 11, 12), user_id=me)

    report = repair(session, RepairScope(user_id=me))

    assert (report.groups_examined, report.duplicate_groups, report.removed) == (2, 2, 2)
    assert month_keys(instances_for(session, rent.id)) == [(2024, 2)]
    assert month_keys(instances_for(session, gym.id)) == [(2024, 2)]
    assert len(instances_for(session, theirs.id)) == 2


def test_failing_group_is_isolated(session, monkeypatch):
    tpl = seed_template(session, user_id=uuid.uuid4())
    for when in (datetime(2024, 1, 31, 12), datetime(2024, 2, 29, 12)):
        seed_instance(session, tpl, when)
        seed_instance(session, tpl, when)

    real_delete = store.delete_instances
    calls = {"n": 0}

    def _flaky(session_, ids):
        calls["n"] += 1
        if calls["n"] == 1:
            raise StoreError("lock timeout")
        return real_delete(session_, ids)

    monkeypatch.setattr(store, "delete_instances", _flaky)
    report = repair(session, RepairScope(template_id=tpl.id))

    assert report.duplicate_groups == 2
    assert report.removed == 1
    assert report.failures == [(f"{tpl.id}:2024-01", "lock timeout")]
    assert month_keys(instances_for(session, tpl.id)) == [(2024, 1), (2024, 1), (2024, 2)]


def test_repair_active_templates_skips_inactive(session):
    live = seed_template(session, user_id=uuid.uuid4())
    retired = seed_template(session, user_id=uuid.uuid4(), is_active=False)
    for tpl in (live, retired):
        seed_instance(session, tpl, datetime(2024, 7, 31, 12))
        seed_instance(session, tpl, datetime(2024, 7, 31, 12))

    report = repair_active_templates(session)

    assert (report.duplicate_groups, report.removed) == (1, 1)
    assert len(instances_for(session, live.id)) == 1
    assert len(instances_for(session, retired.id)) == 2
