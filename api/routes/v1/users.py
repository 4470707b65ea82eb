"""
api/routes/v1/users.py -- Registration, login, profile and user management endpoints.

Routes:
  POST /api/v1/users/register      -- create account (role "user"); 201
  POST /api/v1/users/login         -- password login; returns bearer token
  GET  /api/v1/me                  -- current identity (requires auth)
  PUT  /api/v1/users/{user_id}     -- update username/password/role (self or admin)
  GET  /api/v1/admin/users         -- list all identities, oldest first (admin only)

Handlers that hash or verify passwords are plain `def`, not `async def`:
FastAPI runs them in its worker thread pool so bcrypt never blocks the event
loop.

Errors raised by AccountService (InvalidInput, DuplicateUsername, ...) are
not caught here. api/main.py maps them to status codes in one handler.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse

from api.models import (
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterRequest,
    UserEnvelope,
    UsersListResponse,
    UserUpdate,
)
from auth.accounts import AccountService
from auth.dependencies import get_current_claims, require_admin
from auth.models import SessionClaims

# Auth policy:
# - POST /api/v1/users/register:   public
# - POST /api/v1/users/login:      public
# - GET  /api/v1/me:               requires auth (get_current_claims)
# - PUT  /api/v1/users/{user_id}:  requires auth + self-or-admin (AccessPolicy in AccountService)
# - GET  /api/v1/admin/users:      requires admin (require_admin)
router = APIRouter()

# Identity ids are SQL BIGINT-sized; anything larger cannot name a row.
_UserId = Annotated[int, Path(ge=1, le=2**63 - 1)]


def _accounts(request: Request) -> AccountService:
    return request.app.state.accounts


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/users/register", response_model=UserEnvelope, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserEnvelope:
    """Create a new account with role "user"."""
    identity = _accounts(request).register(body.username, body.password)
    return UserEnvelope(user=IdentityResponse.from_identity(identity))


@router.post("/users/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a bearer token.

    Unknown username and wrong password produce the same 401 body.
    """
    accounts = _accounts(request)
    result = accounts.login(body.username, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=int(accounts.tokens.ttl.total_seconds()),
            user=IdentityResponse.from_identity(result.identity),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(request: Request, claims: SessionClaims = Depends(get_current_claims)) -> MeResponse:
    """Return the stored identity for the token's subject."""
    identity = _accounts(request).profile(claims)
    return MeResponse(me=IdentityResponse.from_identity(identity))


@router.put("/users/{user_id}", response_model=UserEnvelope)
def update_user(
    request: Request,
    user_id: _UserId,
    body: UserUpdate,
    claims: SessionClaims = Depends(get_current_claims),
) -> UserEnvelope:
    """Update an identity. Allowed for the identity itself or any admin.

    A role in the body is applied only for admin callers and only if it is
    "user" or "admin"; otherwise it is ignored and the rest of the update
    still goes through.
    """
    identity = _accounts(request).update(
        claims,
        user_id,
        username=body.username,
        password=body.password,
        role=body.role,
    )
    return UserEnvelope(user=IdentityResponse.from_identity(identity))


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get("/admin/users", response_model=UsersListResponse)
def list_users(request: Request, claims: SessionClaims = Depends(require_admin)) -> UsersListResponse:
    """List all identities ordered by creation time. Admin only."""
    identities = _accounts(request).list_identities()
    return UsersListResponse(users=[IdentityResponse.from_identity(i) for i in identities])
