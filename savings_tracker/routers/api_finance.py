"""Tracker-scoped settings, scenario rates and goals.

Reads need any role on the tracker; mutations need the owner or a ``write``
share. Both checks go through ``AccessControlService.require_access``.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query

from ..core.errors import BadRequest, NotFound
from ..crud.finance import (
    create_goal,
    delete_goal,
    get_goal,
    get_or_create_settings,
    get_scenario_rates,
    list_goals,
    set_scenario_rates,
    update_goal,
    upsert_settings,
)
from ..deps.auth import get_access_service, require_user
from ..schemas.finance import GoalIn, GoalOut, GoalUpdate, SettingsOut, SettingsUpdate
from ..services.access import AccessControlService, store_errors
from ..services.identity import Identity

router = APIRouter(prefix="/api", tags=["finance"])


@router.get("/settings", response_model=SettingsOut)
def api_get_settings(
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    decision = service.require_access(tracker_id, user.id)
    with store_errors(service.db, "fetch settings"):
        return get_or_create_settings(service.db, decision.tracker.id)


@router.put("/settings")
def api_update_settings(
    payload: SettingsUpdate,
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    decision = service.require_access(tracker_id, user.id, write=True)
    with store_errors(service.db, "update settings"):
        upsert_settings(service.db, decision.tracker.id, payload.model_dump(exclude_unset=True))
    return {"success": True}


@router.get("/scenario-rates", response_model=list[float])
def api_get_scenario_rates(
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    decision = service.require_access(tracker_id, user.id)
    with store_errors(service.db, "fetch scenario rates"):
        return get_scenario_rates(service.db, decision.tracker.id)


@router.put("/scenario-rates")
def api_update_scenario_rates(
    rates: list[float] = Body(...),
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    decision = service.require_access(tracker_id, user.id, write=True)
    with store_errors(service.db, "update scenario rates"):
        set_scenario_rates(service.db, decision.tracker.id, rates)
    return {"success": True}

@router.get("/goals", response_model=list[GoalOut])
def api_list_goals(
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    decision = service.require_access(tracker_id, user.id)
    with store_errors(service.db, "fetch goals"):
        return list_goals(service.db, decision.tracker.id)


@router.post("/goals", status_code=201)
def api_create_goal(
    payload: GoalIn,
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    decision = service.require_access(tracker_id, user.id, write=True)
    try:
        with store_errors(service.db, "create goal", conflict="Goal already exists"):
            goal = create_goal(service.db, decision.tracker.id, user.id, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc
    return {"success": True, "id": goal.id}


@router.put("/goals")
def api_update_goal(
    payload: GoalUpdate,
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    decision = service.require_access(tracker_id, user.id, write=True)
    goal = get_goal(service.db, decision.tracker.id, payload.id)
    if goal is None:
        raise NotFound("Goal not found")
    try:
        with store_errors(service.db, "update goal"):
            update_goal(service.db, goal, payload.model_dump(exclude_unset=True, exclude={"id"}))
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc
    return {"success": True}


@router.delete("/goals")
def api_delete_goal(
    goal_id: str | None = Query(None, alias="id"),
    tracker_id: str = Query("", alias="trackerId"),
    user: Identity = Depends(require_user),
    service: AccessControlService = Depends(get_access_service),
):
    if not goal_id:
        raise BadRequest("Goal ID is required")
    decision = service.require_access(tracker_id, user.id, write=True)
    goal = get_goal(service.db, decision.tracker.id, goal_id)
    if goal is None:
        raise NotFound("Goal not found")
    with store_errors(service.db, "delete goal"):
        delete_goal(service.db, goal)
    return {"success": True}
