"""
api/main.py -- FastAPI application entry point for the account service.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- adds CORS headers for allowed browser origins
  2. log_requests     -- one access log line per request

Lifespan reads Settings once and builds every collaborator explicitly (store,
hasher, token issuer, mailer, avatar storage), then wires them into an
AccountManager and a SessionGate on app.state. Route handlers and the auth
dependency only ever see those objects.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.accounts import AccountManager
from auth.avatars import LocalAvatarStorage
from auth.errors import AccountError
from auth.gate import SessionGate
from auth.mail import LogMailer, Mailer, SmtpMailer
from auth.models import AccountConfig
from auth.passwords import BcryptHasher
from auth.store import AccountStore
from auth.tokens import SessionTokenIssuer
from core.config import Settings, get_settings

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("accounts.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Service assembly
# ---------------------------------------------------------------------------


def build_mailer(settings: Settings) -> Mailer:
    if not settings.smtp_host:
        logger.warning("SMTP_HOST not set -- verification mail will be logged, not sent")
        return LogMailer()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
    )


def wire_services(app: FastAPI, store: AccountStore, settings: Settings, mailer: Mailer) -> None:
    """Build the account manager and gate from explicit collaborators onto app.state.

    Shared by the real lifespan and the test lifespan so both run the same
    wiring against different stores and mailers.
    """
    tokens = SessionTokenIssuer(settings.secret_key, ttl_seconds=settings.token_expire_seconds)
    avatars = LocalAvatarStorage(settings.avatars_dir) if settings.avatars_enabled else None
    app.state.store = store
    app.state.avatar_max_bytes = settings.avatar_max_bytes
    app.state.accounts = AccountManager(
        store=store,
        hasher=BcryptHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
        mailer=mailer,
        config=AccountConfig(
            verify_base_url=settings.public_base_url,
            require_verification=settings.require_verification,
        ),
        avatars=avatars,
        mail_sender=settings.mail_sender,
    )
    app.state.gate = SessionGate(store, tokens)


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("Account service starting up")
    store = AccountStore(_settings.database_url)
    wire_services(app, store, _settings, build_mailer(_settings))
    logger.info(
        "Accounts initialized (verification=%s, avatars=%s)",
        _settings.require_verification,
        _settings.avatars_enabled,
    )

    yield

    app.state.store.close()
    logger.info("Account service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Account Service API",
    description="Registration, email verification, and bearer-token sessions.",
    version=_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH"],
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


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Serialize domain errors. Status and code come from the error class."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with structured error when request body or params fail validation."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(code="internal_error", message="An unexpected error occurred.")
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    store: AccountStore = request.app.state.store
    return HealthResponse(
        version=_VERSION,
        components={"app": "ok", "database": "ok" if store.ping() else "error"},
    )


# ---------------------------------------------------------------------------
# Uploaded avatars
#
# Served from whatever directory the wired LocalAvatarStorage uses, so the
# location follows configuration instead of being fixed at import time.
# ---------------------------------------------------------------------------


@app.get("/avatars/{filename}", include_in_schema=False)
async def avatar_file(request: Request, filename: str) -> FileResponse:
    storage = request.app.state.accounts.avatars
    # Bare file names only -- no path separators, no hidden temp files.
    if storage is None or filename.startswith(".") or Path(filename).name != filename:
        raise HTTPException(status_code=404, detail="Not Found")
    path = storage.directory / filename
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not Found")
    return FileResponse(path)
