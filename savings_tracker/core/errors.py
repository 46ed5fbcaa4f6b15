"""Error taxonomy for the access-control core and its HTTP translation.

Services raise the domain exceptions below; the handlers registered on the
FastAPI app turn them into ``{"error": ..., "details": ...}`` JSON bodies with
the matching status code. Nothing below the router layer should know about
HTTP.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class TrackerError(Exception):
    """Base class for every failure the service reports to callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class BadRequest(TrackerError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(TrackerError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(TrackerError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(TrackerError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(TrackerError):
    status_code = status.HTTP_409_CONFLICT


class InternalError(TrackerError):
    """Store or identity-provider failure; ``details`` is for operators."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"error": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def tracker_error_handler(request: Request, exc: TrackerError):
    if isinstance(exc, InternalError):
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return ErrorEnvelope(status_code=exc.status_code, message=exc.message, details=exc.details, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(status_code=exc.status_code, message=message, details=details, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Validation failed")
    if location:
        message = f"{location}: {message}"
    return ErrorEnvelope(
        status_code=status.HTTP_400_BAD_REQUEST,
        message=message,
        details={"errors": [{"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in errors]},
    )


__all__ = [
    "BadRequest",
    "Conflict",
    "ErrorEnvelope",
    "Forbidden",
    "InternalError",
    "NotFound",
    "TrackerError",
    "Unauthorized",
    "http_exception_handler",
    "tracker_error_handler",
    "validation_exception_handler",
]
