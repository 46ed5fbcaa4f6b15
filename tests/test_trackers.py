"""Tests for tracker CRUD helpers and tracker-scoped data."""

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from savings_tracker.crud.finance import (
    create_goal,
    get_or_create_settings,
    get_scenario_rates,
    list_goals,
    set_scenario_rates,
    upsert_settings,
)
from savings_tracker.crud.shares import insert_share
from savings_tracker.crud.trackers import (
    DEFAULT_TRACKER_NAME,
    create_tracker,
    delete_tracker,
    get_tracker,
    list_owned_trackers,
    list_shared_trackers,
    reassign_owner,
    update_tracker,
)
from savings_tracker.db.session import Base, enable_sqlite_foreign_keys
from savings_tracker.models.finance import Goal, ScenarioRates, TrackerSettings
from savings_tracker.models.tracker import Tracker, TrackerShare

# Ensure models are registered so metadata tables are created
from savings_tracker.models import finance as finance_model  # noqa: F401
from savings_tracker.models import tracker as tracker_model  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def _count(db, model, tracker_id):
    return db.execute(select(func.count()).select_from(model).where(model.tracker_id == tracker_id)).scalar_one()


def test_create_tracker_seeds_defaults(db_session):
    tracker = create_tracker(db_session, "owner-1", {})

    assert tracker.name == DEFAULT_TRACKER_NAME
    assert tracker.user_id == "owner-1"
    settings = get_or_create_settings(db_session, tracker.id)
    assert settings.currency == "PHP"
    assert settings.locale == "en-PH"
    assert settings.current_rate_pct == pytest.approx(12.0)
    rates = db_session.execute(select(ScenarioRates).where(ScenarioRates.tracker_id == tracker.id)).scalars().one()
    assert rates.rates == "[5,10,15,20]"


def test_update_tracker_requires_name(db_session):
    tracker = create_tracker(db_session, "owner-1", {"name": "Emergency Fund"})

    update_tracker(db_session, tracker, {"description": "Six months of expenses"})
    assert tracker.description == "Six months of expenses"
    assert tracker.name == "Emergency Fund"

    with pytest.raises(ValueError):
        update_tracker(db_session, tracker, {"name": "   "})


def test_list_shared_trackers_pairs_share(db_session):
    mine = create_tracker(db_session, "owner-1", {"name": "Mine"})
    theirs = create_tracker(db_session, "owner-2", {"name": "Theirs"})
    insert_share(
        db_session,
        tracker_id=theirs.id,
        shared_with_user_id="owner-1",
        permission="write",
        shared_by_user_id="owner-2",
    )

    assert [t.id for t in list_owned_trackers(db_session, "owner-1")] == [mine.id]
    shared = list_shared_trackers(db_session, "owner-1")
    assert [(t.id, s.permission) for t, s in shared] == [(theirs.id, "write")]


def test_delete_tracker_cascades(db_session):
    tracker = create_tracker(db_session, "owner-1", {"name": "House"})
    tracker_id = tracker.id
    insert_share(
        db_session,
        tracker_id=tracker_id,
        shared_with_user_id="friend",
        permission="read",
        shared_by_user_id="owner-1",
    )
    create_goal(db_session, tracker_id, "owner-1", {"name": "Down payment", "target": 50000})

    delete_tracker(db_session, tracker)

    assert get_tracker(db_session, tracker_id, fresh=True) is None
    for model in (TrackerShare, Goal, TrackerSettings, ScenarioRates):
        assert _count(db_session, model, tracker_id) == 0


def test_store_cascade_removes_shares_of_deleted_tracker():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    tracker = create_tracker(db, "owner-1", {"name": "Wedding"})
    tracker_id = tracker.id
    insert_share(db, tracker_id=tracker_id, shared_with_user_id="friend", permission="write", shared_by_user_id="owner-1")

    db.execute(delete(Tracker).where(Tracker.id == tracker_id))
    db.commit()

    assert _count(db, TrackerShare, tracker_id) == 0
    db.close()


def test_reassign_owner_is_guarded_on_current_owner(db_session):
    tracker = create_tracker(db_session, "owner-1", {"name": "Car"})

    assert reassign_owner(db_session, tracker.id, "owner-1", "owner-2") is True
    # A second transfer racing on the stale owner loses.
    assert reassign_owner(db_session, tracker.id, "owner-1", "owner-3") is False
    assert get_tracker(db_session, tracker.id, fresh=True).user_id == "owner-2"


def test_goals_ordered_by_priority_then_deadline(db_session):
    tracker = create_tracker(db_session, "owner-1", {"name": "Goals"})
    create_goal(db_session, tracker.id, "owner-1", {"name": "Later", "target": 10, "priority": 2, "deadline": "2026-01-01"})
    create_goal(db_session, tracker.id, "owner-1", {"name": "Sooner", "target": 10, "priority": 2, "deadline": "2025-01-01"})
    create_goal(db_session, tracker.id, "owner-1", {"name": "Top", "target": 10, "priority": 1})
    create_goal(db_session, tracker.id, "owner-1", {"name": "Someday", "target": 10})

    goals = list_goals(db_session, tracker.id)

    assert [g.name for g in goals] == ["Top", "Sooner", "Later", "Someday"]
    assert goals[-1].owner == "Household"
    assert goals[-1].priority == 999


def test_upsert_settings_keeps_unset_fields(db_session):
    tracker = create_tracker(db_session, "owner-1", {"name": "Settings"})

    row = upsert_settings(db_session, tracker.id, {"currency": "USD", "apy_pct": 4.5})

    assert row.currency == "USD"
    assert row.apy_pct == pytest.approx(4.5)
    assert row.locale == "en-PH"


def test_scenario_rates_default_and_replace(db_session):
    tracker = create_tracker(db_session, "owner-1", {"name": "Rates"})

    assert get_scenario_rates(db_session, tracker.id) == [5, 10, 15, 20]
    # A tracker created before rates were seeded falls back to the defaults.
    assert get_scenario_rates(db_session, "no-row") == [5, 10, 15, 20]

    set_scenario_rates(db_session, tracker.id, [2.5, 7.0])

    assert get_scenario_rates(db_session, tracker.id) == [2.5, 7.0]
    assert _count(db_session, ScenarioRates, tracker.id) == 1
