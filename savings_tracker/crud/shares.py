"""Store helpers for ``tracker_shares`` rows.

These functions only read and write; every authorization decision lives in
``services.access``.
"""

from __future__ import annotations

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.tracker import TrackerShare
from ._time import utcnow


def get_share(db: Session, share_id: str) -> TrackerShare | None:
    return db.get(TrackerShare, share_id)


def get_share_for(db: Session, tracker_id: str, user_id: str) -> TrackerShare | None:
    stmt = select(TrackerShare).where(
        TrackerShare.tracker_id == tracker_id,
        TrackerShare.shared_with_user_id == user_id,
    )
    return db.execute(stmt).scalars().first()


def list_tracker_shares(db: Session, tracker_id: str) -> list[TrackerShare]:
    stmt = (
        select(TrackerShare)
        .where(TrackerShare.tracker_id == tracker_id)
        .order_by(desc(TrackerShare.created_at))
    )
    return list(db.execute(stmt).scalars().all())


def insert_share(
    db: Session,
    *,
    tracker_id: str,
    shared_with_user_id: str,
    permission: str,
    shared_by_user_id: str,
) -> TrackerShare:
    """Insert a share; the unique (tracker, user) constraint raises ``IntegrityError``."""

    now = utcnow()
    share = TrackerShare(
        tracker_id=tracker_id,
        shared_with_user_id=shared_with_user_id,
        permission=permission,
        shared_by_user_id=shared_by_user_id,
        created_at=now,
        updated_at=now,
    )
    db.add(share)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(share)
    return share


def set_share_permission(db: Session, share: TrackerShare, permission: str) -> TrackerShare:
    share.permission = permission
    share.updated_at = utcnow()
    db.commit()
    db.refresh(share)
    return share


def delete_share(db: Session, share: TrackerShare) -> None:
    db.delete(share)
    db.commit()


def delete_tracker_shares(db: Session, tracker_id: str, user_id: str | None = None) -> int:
    """Delete every share of a tracker, or only the one held by ``user_id``."""

    stmt = delete(TrackerShare).where(TrackerShare.tracker_id == tracker_id)
    if user_id is not None:
        stmt = stmt.where(TrackerShare.shared_with_user_id == user_id)
    result = db.execute(stmt.execution_options(synchronize_session=False))
    db.commit()
    return result.rowcount or 0
