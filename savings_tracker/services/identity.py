"""Identity provider adapters.

The access-control code only needs three capabilities from whoever issues
user accounts:

* turn a bearer token into an :class:`Identity`,
* turn a user id into an email address for display,
* find a user by email (a point lookup, never a scan of every account).

``LocalIdentityProvider`` keeps users in our own ``users`` table and verifies
HS256 tokens signed with ``JWT_SECRET``. ``GoTrueIdentityProvider`` talks to a
hosted Supabase/GoTrue auth server with the service-role key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import AppSettings, settings
from ..core.security import TokenPair, decode_token, issue_token_pair
from ..crud._time import utcnow
from ..models.user import User

logger = logging.getLogger(__name__)


class IdentityLookupError(Exception):
    """The identity provider could not be reached or answered with an error."""


class EmailAlreadyRegistered(Exception):
    pass


@dataclass(frozen=True)
class Identity:
    id: str
    email: str | None = None


class IdentityProvider(Protocol):
    def resolve_token(self, token: str) -> Identity | None: ...

    def get_email(self, user_id: str) -> str | None: ...

    def find_by_email(self, email: str) -> Identity | None: ...


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class LocalIdentityProvider:
    """Users stored in the application database; tokens signed locally."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def resolve_token(self, token: str) -> Identity | None:
        try:
            payload = decode_token(token)
        except ValueError:
            return None
        user = self.db.get(User, payload.sub)
        if user is None:
            return None
        return Identity(id=user.id, email=user.email)

    def get_email(self, user_id: str) -> str | None:
        user = self.db.get(User, user_id)
        return user.email if user else None

    def find_by_email(self, email: str) -> Identity | None:
        normalized = _normalize_email(email)
        if not normalized:
            return None
        user = self.db.execute(select(User).where(User.email == normalized)).scalars().first()
        if user is None:
            return None
        return Identity(id=user.id, email=user.email)

    def register(self, email: str) -> User:
        normalized = _normalize_email(email)
        if not normalized or "@" not in normalized:
            raise ValueError("A valid email is required")
        user = User(email=normalized, created_at=utcnow())
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise EmailAlreadyRegistered(normalized) from exc
        self.db.refresh(user)
        logger.info("Registered local user %s", user.id)
        return user

    def issue_tokens(self, user: User) -> TokenPair:
        return issue_token_pair(user.id, email=user.email)


class GoTrueIdentityProvider:
    """Adapter for a hosted GoTrue (Supabase Auth) server."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        api_key: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url or not service_key:
            raise ValueError("SUPABASE_URL and a service key are required for the gotrue backend")
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.api_key = api_key or service_key
        self.client = client or httpx.Client(timeout=timeout)

    def _admin_headers(self) -> dict[str, str]:
        return {"apikey": self.service_key, "Authorization": f"Bearer {self.service_key}"}

    def _get(self, path: str, *, headers: dict[str, str], params: dict[str, Any] | None = None) -> httpx.Response:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            return self.client.get(url, headers=headers, params=params)
        except httpx.HTTPError as exc:
            logger.error("Identity provider request to %s failed: %s", path, exc)
            raise IdentityLookupError(str(exc)) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, context: str) -> None:
        if response.status_code >= 400:
            logger.error("Identity provider error %s during %s", response.status_code, context)
            raise IdentityLookupError(f"{context} failed with status {response.status_code}")

    @staticmethod
    def _json(response: httpx.Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Identity provider sent a non-JSON body during %s", context)
            raise IdentityLookupError(f"{context} returned an unreadable body") from exc

    @staticmethod
    def _to_identity(data: dict[str, Any] | None) -> Identity | None:
        if not data:
            return None
        if not isinstance(data, dict):
            raise IdentityLookupError("Identity provider returned an unexpected user record")
        if not data.get("id"):
            return None
        return Identity(id=str(data["id"]), email=data.get("email"))

    def resolve_token(self, token: str) -> Identity | None:
        response = self._get(
            "/user",
            headers={"apikey": self.api_key, "Authorization": f"Bearer {token}"},
        )
        if response.status_code in {401, 403}:
            return None
        self._raise_for_status(response, "token verification")
        return self._to_identity(self._json(response, "token verification"))

    def get_email(self, user_id: str) -> str | None:
        response = self._get(f"/admin/users/{user_id}", headers=self._admin_headers())
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "user lookup")
        identity = self._to_identity(self._json(response, "user lookup"))
        return identity.email if identity else None

    def find_by_email(self, email: str) -> Identity | None:
        normalized = _normalize_email(email)
        if not normalized:
            return None
        # The admin endpoint filters server side; the exact match below keeps
        # partial matches (e.g. "ann@x.io" vs "joann@x.io") from leaking through.
        response = self._get(
            "/admin/users",
            headers=self._admin_headers(),
            params={"filter": normalized, "per_page": 50},
        )
        self._raise_for_status(response, "user lookup by email")
        payload = self._json(response, "user lookup by email")
        users = (payload.get("users") or []) if isinstance(payload, dict) else payload
        if not isinstance(users, list):
            raise IdentityLookupError("Identity provider returned an unexpected user list")
        for candidate in users:
            if not isinstance(candidate, dict):
                continue
            if _normalize_email(candidate.get("email") or "") == normalized:
                return self._to_identity(candidate)
        return None


_gotrue_provider: GoTrueIdentityProvider | None = None


def build_identity_provider(db: Session, config: AppSettings = settings) -> IdentityProvider:
    """Return the provider selected by ``IDENTITY_BACKEND``."""

    global _gotrue_provider
    if config.IDENTITY_BACKEND == "gotrue":
        if _gotrue_provider is None:
            _gotrue_provider = GoTrueIdentityProvider(
                config.SUPABASE_URL,
                config.service_key,
                api_key=config.SUPABASE_ANON_KEY or None,
                timeout=config.IDENTITY_TIMEOUT,
            )
        return _gotrue_provider
    return LocalIdentityProvider(db)


__all__ = [
    "EmailAlreadyRegistered",
    "GoTrueIdentityProvider",
    "Identity",
    "IdentityLookupError",
    "IdentityProvider",
    "LocalIdentityProvider",
    "build_identity_provider",
]
