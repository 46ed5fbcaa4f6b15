"""CRUD helpers for trackers and the rows that hang off them."""

from __future__ import annotations

from sqlalchemy import delete, desc, select, update
from sqlalchemy.orm import Session

from ..models.finance import TRACKER_DEPENDENT_MODELS, ScenarioRates, TrackerSettings
from ..models.tracker import Tracker, TrackerShare
from ._time import utcnow

DEFAULT_TRACKER_NAME = "My Savings Tracker"
DEFAULT_SETTINGS = {
    "currency": "PHP",
    "locale": "en-PH",
    "current_rate_pct": 12.0,
    "apy_pct": 3.0,
    "inflation_pct": 4.0,
}
DEFAULT_SCENARIO_RATES = "[5,10,15,20]"


def get_tracker(db: Session, tracker_id: str, *, fresh: bool = False) -> Tracker | None:
    """Load a tracker; ``fresh`` bypasses the session's identity map."""

    stmt = select(Tracker).where(Tracker.id == tracker_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    return db.execute(stmt).scalars().first()


def list_owned_trackers(db: Session, user_id: str) -> list[Tracker]:
    stmt = select(Tracker).where(Tracker.user_id == user_id).order_by(desc(Tracker.created_at))
    return list(db.execute(stmt).scalars().all())


def list_shared_trackers(db: Session, user_id: str) -> list[tuple[Tracker, TrackerShare]]:
    stmt = (
        select(Tracker, TrackerShare)
        .join(TrackerShare, TrackerShare.tracker_id == Tracker.id)
        .where(TrackerShare.shared_with_user_id == user_id)
        .order_by(desc(Tracker.created_at))
    )
    return [(tracker, share) for tracker, share in db.execute(stmt).all()]


def create_tracker(db: Session, owner_id: str, payload: dict) -> Tracker:
    name = (payload.get("name") or "").strip() or DEFAULT_TRACKER_NAME
    now = utcnow()
    tracker = Tracker(
        user_id=owner_id,
        name=name,
        description=(payload.get("description") or None),
        created_at=now,
        updated_at=now,
    )
    db.add(tracker)
    db.flush()
    db.add(TrackerSettings(tracker_id=tracker.id, updated_at=now, **DEFAULT_SETTINGS))
    db.add(ScenarioRates(tracker_id=tracker.id, rates=DEFAULT_SCENARIO_RATES))
    db.commit()
    db.refresh(tracker)
    return tracker


def update_tracker(db: Session, tracker: Tracker, payload: dict) -> Tracker:
    if "name" in payload:
        name = (payload.get("name") or "").strip()
        if not name:
            raise ValueError("name is required")
        tracker.name = name
    if "description" in payload:
        tracker.description = payload.get("description") or None
    tracker.updated_at = utcnow()
    db.commit()
    db.refresh(tracker)
    return tracker


def delete_tracker(db: Session, tracker: Tracker) -> None:
    tracker_id = tracker.id
    # Explicit deletes keep the cascade working on stores without FK enforcement.
    for model in TRACKER_DEPENDENT_MODELS:
        db.execute(delete(model).where(model.tracker_id == tracker_id))
    db.execute(delete(TrackerShare).where(TrackerShare.tracker_id == tracker_id))
    db.execute(delete(Tracker).where(Tracker.id == tracker_id))
    db.commit()


def reassign_owner(db: Session, tracker_id: str, current_owner_id: str, new_owner_id: str) -> bool:
    """Move ownership only if ``current_owner_id`` still owns the tracker.

    Returns ``False`` when another request changed the owner first.
    """

    stmt = (
        update(Tracker)
        .where(Tracker.id == tracker_id, Tracker.user_id == current_owner_id)
        .values(user_id=new_owner_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount == 1
