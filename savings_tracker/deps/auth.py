from __future__ import annotations

from fastapi import Depends, Header, Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session

from ..core.errors import InternalError, Unauthorized
from ..db.session import get_db
from ..middlewares import principal_ctx_var
from ..services.access import AccessControlService
from ..services.identity import Identity, IdentityLookupError, IdentityProvider, build_identity_provider


def get_identity_provider(db: Session = Depends(get_db)) -> IdentityProvider:
    return build_identity_provider(db)


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


def resolve_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """Resolve the bearer token to the calling user or fail with 401."""

    if not authorization:
        raise Unauthorized("Unauthorized", details="No authorization header")
    scheme, credentials = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not credentials.strip():
        raise Unauthorized("Unauthorized", details="Bearer token required")
    try:
        user = identity.resolve_token(credentials.strip())
    except IdentityLookupError as exc:
        raise InternalError("Failed to verify token", details=str(exc)) from exc
    if user is None:
        raise Unauthorized("Unauthorized", details="Invalid token")
    return user


async def require_user(request: Request, user: Identity = Depends(resolve_user)) -> Identity:
    """Record the caller for logging. Runs on the event loop so that sync
    endpoints, and the services they call, inherit ``principal_ctx_var``."""

    _set_principal(request, f"user:{user.id}")
    request.state.user = user
    return user


def get_access_service(
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> AccessControlService:
    return AccessControlService(db, identity)
