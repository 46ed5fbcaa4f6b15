"""Pydantic schemas that describe tracker payloads for the API."""

from __future__ import annotations

from typing import Optional

from .base import CamelModel


class TrackerCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None


class TrackerUpdate(CamelModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None


class OwnershipTransfer(CamelModel):
    id: str
    new_owner_id: Optional[str] = None
    new_owner_email: Optional[str] = None

    model_config = {
        "json_schema_extra": {"example": {"id": "<tracker-id>", "newOwnerEmail": "partner@example.com"}},
    }


class TrackerOut(CamelModel):
    id: str
    name: str
    description: str = ""
    created_at: str
    updated_at: str
    is_owner: bool
    permission: Optional[str] = None


class TrackerCreated(CamelModel):
    success: bool = True
    id: str
    name: str
