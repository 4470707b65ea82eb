"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

These are thin adapters around AuthGateway, which lives on app.state:

  get_current_claims()  -- Authorization: Bearer <token> -> SessionClaims,
                           or HTTP 401.
  require_role(*roles)  -- dependency factory; get_current_claims() plus a
                           role gate, HTTP 403 for the wrong role.

On success the verified claims are attached to request.state.claims. That is
the only identity downstream handlers may trust.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for Depends/HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request

from auth.gateway import AuthGateway
from auth.models import Role, SessionClaims
from auth.results import Authenticated, AuthResult, Rejected, RejectionKind

_REJECTIONS: dict[RejectionKind, tuple[int, str]] = {
    RejectionKind.MISSING_CREDENTIAL: (401, "Missing or invalid Authorization header"),
    RejectionKind.INVALID_OR_EXPIRED_CREDENTIAL: (401, "Invalid or expired token"),
    RejectionKind.UNAUTHENTICATED: (401, "Unauthorized"),
    RejectionKind.INSUFFICIENT_ROLE: (403, "Forbidden: insufficient role"),
}


def rejection_to_http(kind: RejectionKind) -> HTTPException:
    """Build the HTTPException for a gateway rejection.

    401s carry WWW-Authenticate: Bearer so clients know which scheme to retry.
    """
    status_code, message = _REJECTIONS[kind]
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(
        status_code=status_code,
        detail={"code": kind.value, "message": message},
        headers=headers,
    )


def _claims_or_raise(result: AuthResult) -> SessionClaims:
    match result:
        case Authenticated(claims=claims):
            return claims
        case Rejected(kind=kind):
            raise rejection_to_http(kind)
    raise TypeError(f"Unexpected AuthResult: {result!r}")


def get_current_claims(request: Request) -> SessionClaims:
    """Require a valid bearer token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(claims: SessionClaims = Depends(get_current_claims)): ...
    """
    gateway: AuthGateway = request.app.state.gateway
    claims = _claims_or_raise(gateway.authenticate(request.headers.get("Authorization")))
    request.state.claims = claims
    return claims


def require_role(*allowed: Role) -> Callable[..., SessionClaims]:
    """Return a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(claims: SessionClaims = Depends(require_role(Role.ADMIN))): ...
    """

    def dependency(request: Request, claims: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
        gateway: AuthGateway = request.app.state.gateway
        return _claims_or_raise(gateway.require_role(claims, *allowed))

    return dependency


require_admin = require_role(Role.ADMIN)
