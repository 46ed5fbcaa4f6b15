"""Local identity directory used when no hosted auth server is configured."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Text

from ..db.session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True, default=lambda: str(uuid4()))
    # Stored lower-cased; lookups compare case-insensitively by normalising input.
    email = Column(Text, nullable=False, unique=True, index=True)
    created_at = Column(Text, nullable=False)


__all__ = ["User"]
