"""Application wiring for the Savings Tracker API.

Brings together configuration, database setup, middlewares, API routers and
error handling. Importing the package builds the FastAPI ``app`` and makes
sure the tables exist, so tests and ``uvicorn savings_tracker.main:app`` get
the same object.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    TrackerError,
    http_exception_handler,
    tracker_error_handler,
    validation_exception_handler,
)
from .db.session import Base, engine
from .middlewares import PreflightMiddleware, RequestIdMiddleware, SecurityHeadersMiddleware

# Importing the models registers them with the metadata so ``create_all``
# knows about every table.
from .models import finance as _finance  # noqa: F401
from .models import tracker as _tracker  # noqa: F401
from .models import user as _user  # noqa: F401

app = FastAPI(title=settings.APP_NAME)

Base.metadata.create_all(bind=engine)

# ---------- Middlewares ----------
# Starlette runs the last-added middleware first: preflights are answered
# before the request id, CORS or any auth dependency sees them.
app.add_middleware(SecurityHeadersMiddleware)
if settings.ALLOWED_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.add_middleware(RequestIdMiddleware)
app.add_middleware(PreflightMiddleware, allowed_origins=settings.ALLOWED_ORIGINS)

# ---------- Routers ----------
from .routers import api_auth as api_auth_router  # noqa: E402
from .routers import api_finance as api_finance_router  # noqa: E402
from .routers import api_tracker_shares as api_tracker_shares_router  # noqa: E402
from .routers import api_trackers as api_trackers_router  # noqa: E402

app.include_router(api_auth_router.router)
app.include_router(api_trackers_router.router)
app.include_router(api_tracker_shares_router.router)
app.include_router(api_finance_router.router)

# ---------- Exception handling ----------
app.add_exception_handler(TrackerError, tracker_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


__all__ = ["app"]
