"""CRUD helpers for tracker settings and savings goals."""

from __future__ import annotations

import json
from uuid import uuid4

from sqlalchemy import asc, select
from sqlalchemy.orm import Session

from ..models.finance import Goal, ScenarioRates, TrackerSettings
from ._time import utcnow
from .trackers import DEFAULT_SCENARIO_RATES, DEFAULT_SETTINGS

SETTINGS_FIELDS = ("currency", "locale", "current_rate_pct", "apy_pct", "inflation_pct")
DEFAULT_GOAL_OWNER = "Household"
DEFAULT_GOAL_PRIORITY = 999


def get_or_create_settings(db: Session, tracker_id: str) -> TrackerSettings:
    row = db.execute(select(TrackerSettings).where(TrackerSettings.tracker_id == tracker_id)).scalars().first()
    if row is not None:
        return row
    row = TrackerSettings(tracker_id=tracker_id, updated_at=utcnow(), **DEFAULT_SETTINGS)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def upsert_settings(db: Session, tracker_id: str, payload: dict) -> TrackerSettings:
    row = get_or_create_settings(db, tracker_id)
    for field in SETTINGS_FIELDS:
        value = payload.get(field)
        if value is not None:
            setattr(row, field, value)
    row.updated_at = utcnow()
    db.commit()
    db.refresh(row)
    return row


def get_scenario_rates(db: Session, tracker_id: str) -> list[float]:
    row = db.execute(select(ScenarioRates).where(ScenarioRates.tracker_id == tracker_id)).scalars().first()
    return json.loads(row.rates if row is not None else DEFAULT_SCENARIO_RATES)


def set_scenario_rates(db: Session, tracker_id: str, rates: list[float]) -> list[float]:
    row = db.execute(select(ScenarioRates).where(ScenarioRates.tracker_id == tracker_id)).scalars().first()
    if row is None:
        row = ScenarioRates(tracker_id=tracker_id)
        db.add(row)
    row.rates = json.dumps(rates, separators=(",", ":"))
    db.commit()
    return rates

def list_goals(db: Session, tracker_id: str) -> list[Goal]:
    stmt = (
        select(Goal)
        .where(Goal.tracker_id == tracker_id)
        .order_by(asc(Goal.priority), asc(Goal.deadline))
    )
    return list(db.execute(stmt).scalars().all())


def get_goal(db: Session, tracker_id: str, goal_id: str) -> Goal | None:
    stmt = select(Goal).where(Goal.tracker_id == tracker_id, Goal.id == goal_id)
    return db.execute(stmt).scalars().first()


def create_goal(db: Session, tracker_id: str, user_id: str, payload: dict) -> Goal:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("name is required")
    now = utcnow()
    goal = Goal(
        id=payload.get("id") or str(uuid4()),
        tracker_id=tracker_id,
        user_id=user_id,
        name=name,
        target=float(payload.get("target") or 0),
        deadline=payload.get("deadline") or None,
        owner=payload.get("owner") or DEFAULT_GOAL_OWNER,
        priority=payload.get("priority") or DEFAULT_GOAL_PRIORITY,
        created_at=now,
        updated_at=now,
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal


def update_goal(db: Session, goal: Goal, payload: dict) -> Goal:
    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            raise ValueError("name is required")
        goal.name = name
    for field in ("target", "deadline", "owner", "priority"):
        if field in payload and payload[field] is not None:
            setattr(goal, field, payload[field])
    goal.updated_at = utcnow()
    db.commit()
    db.refresh(goal)
    return goal


def delete_goal(db: Session, goal: Goal) -> None:
    db.delete(goal)
    db.commit()
