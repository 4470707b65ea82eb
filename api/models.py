"""
API request and response models for Roster REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request fields are Optional on purpose: length and presence rules live in
auth/accounts.py so the API and the CLI enforce the same policy and return
the same messages. Pydantic only rejects wrong JSON types here.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Identity

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users/register."""

    username: Optional[str] = Field(default=None, description="3-32 characters")
    password: Optional[str] = Field(default=None, description="8-32 characters")


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login."""

    username: Optional[str] = None
    password: Optional[str] = None


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{user_id}.

    role is a plain string, not an enum: an unrecognised value must be
    ignored by the policy layer, not rejected by validation.
    """

    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class IdentityResponse(BaseModel):
    """Public view of an identity. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    role: str
    created_at: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            id=identity.id,
            username=identity.username,
            role=identity.role.value,
            created_at=identity.created_at,
        )


class UserEnvelope(BaseModel):
    """Response for register and update: {"user": {...}}."""

    model_config = ConfigDict(frozen=True)

    user: IdentityResponse


class MeResponse(BaseModel):
    """Response for GET /api/v1/me."""

    model_config = ConfigDict(frozen=True)

    me: IdentityResponse


class UsersListResponse(BaseModel):
    """Response for GET /api/v1/admin/users."""

    model_config = ConfigDict(frozen=True)

    users: list[IdentityResponse]


class LoginResponse(BaseModel):
    """Response for POST /api/v1/users/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: IdentityResponse


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
