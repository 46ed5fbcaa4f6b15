from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..deps.auth import get_access_service, require_user
from ..schemas.share import ShareCreate, ShareOut, ShareUpdate
from ..services.access import AccessControlService
from ..services.identity import Identity

router = APIRouter(prefix="/api/tracker-shares", tags=["tracker-shares"])


@router.get("", response_model=list[ShareOut])
def api_list_shares(
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    return service.list_shares(tracker_id, user.id)


@router.post("", response_model=ShareOut, status_code=201)
def api_create_share(
    payload: ShareCreate,
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    return service.create_share(
        payload.tracker_id,
        user.id,
        shared_with_user_id=payload.shared_with_user_id,
        shared_with_email=payload.shared_with_email,
        permission=payload.permission,
    )


@router.put("", response_model=ShareOut)
def api_update_share(
    payload: ShareUpdate,
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    return service.update_share_permission(payload.share_id, user.id, payload.permission)


@router.delete("")
def api_delete_share(
    share_id: str | None = Query(None, alias="shareId"),
    tracker_id: str | None = Query(None, alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    service.delete_share(user.id, share_id=share_id, tracker_id=tracker_id)
    return {"success": True}
