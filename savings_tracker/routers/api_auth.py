"""Account endpoints for the local identity backend.

A hosted auth server issues its own tokens, so these routes answer 404 when
``IDENTITY_BACKEND`` is ``gotrue``.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import BadRequest, Conflict, NotFound, Unauthorized
from ..core.security import REFRESH_TOKEN, decode_token, refresh_access_token
from ..db.session import get_db
from ..models.user import User
from ..schemas.auth import RefreshRequest, RegisterRequest, TokenResponse
from ..services.identity import EmailAlreadyRegistered, LocalIdentityProvider

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _require_local_backend() -> None:
    if settings.IDENTITY_BACKEND != "local":
        raise NotFound("Local accounts are disabled")


@router.post("/register", response_model=TokenResponse, status_code=201, dependencies=[Depends(_require_local_backend)])
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    provider = LocalIdentityProvider(db)
    try:
        user = provider.register(payload.email)
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc
    except EmailAlreadyRegistered as exc:
        raise Conflict("An account with this email already exists") from exc
    pair = provider.issue_tokens(user)
    return TokenResponse(user_id=user.id, **pair.model_dump())


@router.post("/refresh", response_model=TokenResponse, dependencies=[Depends(_require_local_backend)])
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    try:
        claims = decode_token(payload.refresh_token, verify_type=REFRESH_TOKEN)
    except ValueError as exc:
        raise Unauthorized(str(exc)) from exc
    if db.get(User, claims.sub) is None:
        raise Unauthorized("Unknown user")
    pair = refresh_access_token(payload.refresh_token)
    return TokenResponse(user_id=claims.sub, **pair.model_dump())
