"""
api/main.py -- FastAPI application entry point for SimpleAuth.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for allowed browser origins
  2. log_requests   -- one INFO line per request with status and latency

Lifespan builds the user store selected by STORE_BACKEND, creates the
bootstrap admin if configured, and closes the store on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, FieldError, HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import AuthError, AuthErrorCode
from auth.models import Role
from auth.store import UserStore, create_store
from core.config import Settings, get_settings

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("simpleauth.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def _bootstrap_admin(store: UserStore, settings: Settings) -> None:
    """Create the ADMIN_* account unless a user with that email already exists.

    Idempotent, so restarting against a persistent SQL store is safe.
    """
    if not settings.bootstrap_admin:
        return
    if store.find_by_email(settings.admin_email) is not None:
        logger.info("Bootstrap admin %s already present", settings.admin_username)
        return
    try:
        store.create(settings.admin_username, settings.admin_email, settings.admin_password, role=Role.admin)
    except AuthError as exc:
        logger.warning("Bootstrap admin not created: %s", exc.message)
        return
    logger.info("Bootstrap admin %s created", settings.admin_username)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the user store on startup and release it on shutdown."""
    logger.info("SimpleAuth API starting up (store=%s)", _settings.store_backend)
    app.state.user_store = create_store(_settings)
    _bootstrap_admin(app.state.user_store, _settings)

    yield

    app.state.user_store.close()
    logger.info("SimpleAuth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SimpleAuth API",
    description="Register, log in and look up users with opaque bearer tokens.",
    version=VERSION,
    debug=_settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.include_router(auth_router, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope
# ({"success": false, "message": ...}) so clients parse every failure the
# same way regardless of status code.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return _envelope(
        exc.status_code,
        ErrorResponse(
            message=exc.message,
            error=exc.detail,
            errors=[FieldError(**e) for e in exc.errors] if exc.errors else None,
        ),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema failures (wrong types, unparseable JSON) use the 400 validation envelope."""
    errors = []
    for e in exc.errors():
        field = ".".join(str(p) for p in e.get("loc", ()) if p != "body") or "body"
        errors.append(FieldError(field=field, message=e.get("msg", "")))
    return _envelope(400, ErrorResponse(message=AuthError(AuthErrorCode.VALIDATION_FAILED).message, errors=errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Routing errors (404, 405) in the standard envelope."""
    return _envelope(exc.status_code, ErrorResponse(message=str(exc.detail).lower()))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for anything a route failed to convert.

    The routes already turn unexpected failures into INTERNAL_ERROR with a
    detail; reaching this handler means a bug outside those try blocks, so
    the detail is logged but not returned.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, ErrorResponse(message=AuthError(AuthErrorCode.INTERNAL_ERROR).message))


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness, version and the active store backend."""
    return HealthResponse(version=VERSION, store=_settings.store_backend)
