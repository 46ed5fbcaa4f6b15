from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.errors import BadRequest
from ..crud.trackers import (
    create_tracker,
    delete_tracker,
    list_owned_trackers,
    list_shared_trackers,
    update_tracker,
)
from ..db.session import get_db
from ..deps.auth import get_access_service, require_user
from ..schemas.tracker import OwnershipTransfer, TrackerCreate, TrackerCreated, TrackerOut, TrackerUpdate
from ..services.access import AccessControlService, store_errors
from ..services.identity import Identity

router = APIRouter(prefix="/api/trackers", tags=["trackers"])
logger = logging.getLogger(__name__)


def _tracker_to_schema(tracker, *, is_owner: bool, permission: str | None = None) -> TrackerOut:
    return TrackerOut(
        id=tracker.id,
        name=tracker.name,
        description=tracker.description or "",
        created_at=tracker.created_at,
        updated_at=tracker.updated_at,
        is_owner=is_owner,
        permission=permission,
    )


@router.get("", response_model=list[TrackerOut])
def api_list_trackers(user: Identity = Depends(require_user), db: Session = Depends(get_db)):
    with store_errors(db, "fetch trackers"):
        owned = list_owned_trackers(db, user.id)
        shared = list_shared_trackers(db, user.id)
    seen: set[str] = set()
    result: list[TrackerOut] = []
    for tracker in owned:
        seen.add(tracker.id)
        result.append(_tracker_to_schema(tracker, is_owner=True, permission="write"))
    for tracker, share in shared:
        if tracker.id in seen:
            continue
        seen.add(tracker.id)
        result.append(_tracker_to_schema(tracker, is_owner=False, permission=share.permission))
    return result


@router.post("", response_model=TrackerCreated, status_code=201)
def api_create_tracker(
    payload: TrackerCreate,
    user: Identity = Depends(require_user),
    db: Session = Depends(get_db),
):
    with store_errors(db, "create tracker"):
        tracker = create_tracker(db, user.id, payload.model_dump(exclude_unset=True))
    logger.info("Tracker %s created by %s", tracker.id, user.id)
    return TrackerCreated(id=tracker.id, name=tracker.name)


@router.put("")
def api_update_tracker(
    payload: TrackerUpdate,
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    tracker = service.require_owner(payload.id, user.id, "Only tracker owner can update the tracker")
    try:
        with store_errors(service.db, "update tracker"):
            update_tracker(service.db, tracker, payload.model_dump(exclude_unset=True, exclude={"id"}))
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc
    return {"success": True}


@router.delete("")
def api_delete_tracker(
    tracker_id: str | None = Query(None, alias="id"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    if not tracker_id:
        raise BadRequest("Tracker ID is required")
    tracker = service.require_owner(tracker_id, user.id, "Only tracker owner can delete the tracker")
    with store_errors(service.db, "delete tracker"):
        delete_tracker(service.db, tracker)
    logger.info("Tracker %s deleted by %s", tracker_id, user.id)
    return {"success": True}


@router.patch("")
def api_transfer_tracker(
    payload: OwnershipTransfer,
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    service.transfer_ownership(
        payload.id,
        user.id,
        new_owner_id=payload.new_owner_id,
        new_owner_email=payload.new_owner_email,
    )
    return {"success": True, "message": "Tracker ownership transferred successfully"}
