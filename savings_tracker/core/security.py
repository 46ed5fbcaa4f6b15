"""Bearer token helpers for the local identity backend.

Tokens mirror the shape a hosted Supabase/GoTrue server issues: HS256 JWTs
whose ``sub`` is the user id, carrying an ``email`` claim and the
``authenticated`` audience. Keeping the same claims means the hosted backend
and the local one are interchangeable from the API's point of view.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenPayload(BaseModel):
    sub: str
    exp: datetime
    iat: datetime
    aud: str
    email: str | None = None
    typ: str = ACCESS_TOKEN


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _encode_token(subject: str, email: str | None, expires_delta: timedelta, token_type: str) -> str:
    now = _now()
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "typ": token_type,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def issue_token_pair(subject: str, email: str | None = None) -> TokenPair:
    access_delta = timedelta(minutes=settings.JWT_ACCESS_TTL_MIN)
    refresh_delta = timedelta(days=settings.JWT_REFRESH_TTL_DAYS)
    return TokenPair(
        access_token=_encode_token(subject, email, access_delta, ACCESS_TOKEN),
        refresh_token=_encode_token(subject, email, refresh_delta, REFRESH_TOKEN),
        expires_in=int(access_delta.total_seconds()),
    )


def decode_token(token: str, *, verify_type: str | None = ACCESS_TOKEN) -> TokenPayload:
    try:
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    try:
        payload = TokenPayload.model_validate(decoded)
    except ValidationError as exc:
        raise ValueError("Invalid token payload") from exc
    if verify_type and payload.typ != verify_type:
        raise ValueError("Invalid token type")
    return payload


def refresh_access_token(refresh_token: str) -> TokenPair:
    payload = decode_token(refresh_token, verify_type=REFRESH_TOKEN)
    return issue_token_pair(payload.sub, email=payload.email)
