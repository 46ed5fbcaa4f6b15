from __future__ import annotations

from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

ALLOWED_METHODS = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
ALLOWED_HEADERS = "Authorization, Content-Type, X-Request-ID"


class PreflightMiddleware(BaseHTTPMiddleware):
    """Answer every ``OPTIONS`` request with an empty 200.

    Browsers send preflights without credentials, so they must be answered
    before the bearer-token dependency or any route handler runs.
    """

    def __init__(self, app, allowed_origins: Iterable[str] = ()) -> None:  # type: ignore[override]
        super().__init__(app)
        self.allowed_origins = set(allowed_origins)

    def _cors_headers(self, origin: str | None) -> dict[str, str]:
        if not origin:
            return {}
        if "*" not in self.allowed_origins and origin not in self.allowed_origins:
            return {}
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
            "Vary": "Origin",
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=self._cors_headers(request.headers.get("origin")))
        return await call_next(request)
