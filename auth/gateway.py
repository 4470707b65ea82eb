"""
auth/gateway.py -- Request-level authentication and role gating.

Each request walks one path:

  Unauthenticated -> TokenExtracted -> ClaimsVerified -> Authorized
                  \\-> Rejected(MISSING_CREDENTIAL)
                                    \\-> Rejected(INVALID_OR_EXPIRED_CREDENTIAL)

and, for admin-only operations, a second gate:

  claims -> require_role(...) -> Authenticated | Rejected(UNAUTHENTICATED | INSUFFICIENT_ROLE)

AuthGateway is framework-agnostic: it takes the raw Authorization header
value and returns an AuthResult. auth/dependencies.py is the FastAPI adapter
that turns a Rejected into an HTTP error.

Expired and tampered tokens produce the same rejection kind. Clients only
need to know the token is no longer usable; the distinction is logged.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import TokenError, TokenExpired
from auth.models import Role, SessionClaims
from auth.policy import AccessPolicy
from auth.results import Authenticated, AuthResult, Rejected, RejectionKind
from auth.tokens import TokenAuthority

logger = logging.getLogger("roster.auth")

BEARER_SCHEME = "Bearer"


def extract_bearer(authorization: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" value, else None.

    The scheme match is exact and the value must have exactly two parts.
    """
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        return None
    return parts[1]


class AuthGateway:
    """Composes TokenAuthority and AccessPolicy into per-request decisions."""

    def __init__(self, tokens: TokenAuthority, policy: AccessPolicy) -> None:
        self.tokens = tokens
        self.policy = policy

    def authenticate(self, authorization: str | None) -> AuthResult:
        token = extract_bearer(authorization)
        if token is None:
            return Rejected(RejectionKind.MISSING_CREDENTIAL)

        try:
            claims = self.tokens.verify(token)
        except TokenExpired:
            logger.debug("Rejected expired token")
            return Rejected(RejectionKind.INVALID_OR_EXPIRED_CREDENTIAL)
        except TokenError:
            logger.info("Rejected invalid token")
            return Rejected(RejectionKind.INVALID_OR_EXPIRED_CREDENTIAL)

        return Authenticated(claims)

    def require_role(self, claims: SessionClaims | None, *allowed: Role | str) -> AuthResult:
        if claims is None:
            return Rejected(RejectionKind.UNAUTHENTICATED)
        if not self.policy.require_role(claims, allowed):
            logger.info("Rejected user_id=%s role=%s for role gate", claims.subject, claims.role.value)
            return Rejected(RejectionKind.INSUFFICIENT_ROLE)
        return Authenticated(claims)
