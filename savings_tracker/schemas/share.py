"""Request and response records for the tracker-shares endpoint.

Field presence and enum checks that carry business meaning (a missing share
target, an unknown permission) are left to the access-control service so the
HTTP layer and direct callers get the same errors.
"""

from __future__ import annotations

from typing import Optional

from .base import CamelModel


class ShareCreate(CamelModel):
    tracker_id: str
    shared_with_user_id: Optional[str] = None
    shared_with_email: Optional[str] = None
    permission: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {"trackerId": "<tracker-id>", "sharedWithEmail": "friend@example.com", "permission": "read"}
        },
    }


class ShareUpdate(CamelModel):
    share_id: str
    permission: str


class ShareOut(CamelModel):
    id: str
    tracker_id: str
    shared_with_user_id: str
    permission: str
    shared_by_user_id: str
    created_at: str
    updated_at: str
    shared_with_email: Optional[str] = None
