"""SQLAlchemy models for trackers and the share grants attached to them."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Text, UniqueConstraint

from ..db.session import Base


def _new_id() -> str:
    return str(uuid4())


class Tracker(Base):
    """A savings workspace owned by exactly one identity.

    ``user_id`` is the current owner. It is only ever rewritten by an
    ownership transfer, which guards the update on the previous owner.
    """

    __tablename__ = "trackers"

    id = Column(Text, primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


class TrackerShare(Base):
    """A ``read`` or ``write`` grant from a tracker's owner to another identity."""

    __tablename__ = "tracker_shares"
    __table_args__ = (
        UniqueConstraint("tracker_id", "shared_with_user_id", name="uq_tracker_share_user"),
    )

    id = Column(Text, primary_key=True, default=_new_id)
    tracker_id = Column(Text, ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False, index=True)
    shared_with_user_id = Column(Text, nullable=False, index=True)
    permission = Column(Text, nullable=False, default="read")
    shared_by_user_id = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


__all__ = ["Tracker", "TrackerShare"]
