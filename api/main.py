"""
api/main.py -- FastAPI application entry point for Roster.

Run with:      uvicorn api.main:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. CORSMiddleware       -- adds CORS headers for allowed browser origins
  2. log_requests         -- method, path, status and latency for every request

Lifespan loads Settings once, builds the store and every auth component from
it, and hangs them on app.state. Nothing below this module reads settings on
its own: PasswordHasher, TokenAuthority and UserStore receive their values
through their constructors. A missing SECRET_KEY or DATABASE_URL makes
get_settings() raise, so the server refuses to start.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.users import router as users_router
from auth.accounts import AccountService
from auth.errors import AccessDenied, AccountError, DuplicateUsername, InvalidCredentials, InvalidInput, NotFound
from auth.gateway import AuthGateway
from auth.passwords import PasswordHasher
from auth.policy import AccessPolicy
from auth.store import UserStore
from auth.tokens import TokenAuthority
from core.config import Settings, get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("roster.api")

# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_components(app: FastAPI, settings: Settings, store: UserStore) -> None:
    """Construct the auth components from settings and attach them to app.state.

    Split out of lifespan so tests can wire an in-memory store the same way.
    """
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenAuthority(
        settings.secret_key.get_secret_value(),
        ttl=timedelta(seconds=settings.token_expire_seconds),
    )
    policy = AccessPolicy()
    app.state.user_store = store
    app.state.gateway = AuthGateway(tokens, policy)
    app.state.accounts = AccountService(store, hasher, tokens, policy)


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build components on startup; dispose of the store on shutdown."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Roster API starting up")
    store = UserStore(settings.database_url)
    build_components(app, settings, store)
    logger.info(
        "Auth initialized (token_ttl=%ss, bcrypt_rounds=%s, has_users=%s)",
        settings.token_expire_seconds,
        settings.bcrypt_rounds,
        store.has_users(),
    )

    yield

    app.state.user_store.close()
    logger.info("Roster API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Roster API",
    description="User registration, password login, signed session tokens and role-based access control.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(users_router, prefix="/api/v1", tags=["Users"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

_ACCOUNT_ERROR_STATUS: dict[type[AccountError], int] = {
    InvalidInput: 400,
    InvalidCredentials: 401,
    AccessDenied: 403,
    NotFound: 404,
    DuplicateUsername: 409,
}


def account_error_status(exc: AccountError) -> int:
    for cls in type(exc).__mro__:
        if cls in _ACCOUNT_ERROR_STATUS:
            return _ACCOUNT_ERROR_STATUS[cls]
    return 400


@app.exception_handler(AccountError)
async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    """Map account workflow failures to their HTTP status."""
    status_code = account_error_status(exc)
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.message)).model_dump(),
    )
    if isinstance(exc, InvalidCredentials):
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or path params fail validation."""
    return JSONResponse(
        status_code=422,
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

    Auth dependencies raise HTTPException with a dict detail. When detail is
    already a structured dict, use it directly as the error field rather than
    stringifying it -- str(dict) produces a Python repr, not JSON.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
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
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    database = "ok" if request.app.state.user_store.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
