"""
auth/tokens.py -- Session token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the server secret and
       carry sub (identity id), username, role, iat and exp. The token is the
       whole session: nothing is stored server-side, so there is no lookup on
       verify and no revocation before expiry.

  Algorithm pinning: decode() is always called with algorithms=["HS256"].
       A token whose header names another algorithm (including "none") is
       rejected before any signature maths happens.

  Expiry: jose's own exp check is switched off and replaced by an explicit
       `now <= expires_at` comparison against an injectable clock. exp is
       still a required claim. The clock seam is what lets tests pin the
       accept/reject boundary to the second.

  Claims shape: sub must parse as an int and role must be a known Role;
       anything else is TokenInvalid, same as a bad signature.

Layer rule: no imports from api/ or core/. The secret and TTL are passed in
by whoever constructs TokenAuthority.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from auth.errors import TokenExpired, TokenInvalid
from auth.models import Role, SessionClaims

logger = logging.getLogger("roster.auth")

ALGORITHM = "HS256"

_REQUIRED_CLAIMS = ("sub", "username", "role", "iat", "exp")

_DECODE_OPTIONS = {
    "verify_exp": False,  # checked below against self._clock
    "require_exp": True,
    "require_iat": True,
    "require_sub": True,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenAuthority:
    """Issues and verifies signed, time-limited session tokens.

    Usage:
        authority = TokenAuthority(secret, ttl=timedelta(hours=2))
        token = authority.issue(identity.id, identity.username, identity.role)
        claims = authority.verify(token)   # raises TokenInvalid / TokenExpired
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(hours=2),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("TokenAuthority requires a non-empty signing secret.")
        self._secret = secret
        self.ttl = ttl
        self._clock = clock

    def __repr__(self) -> str:
        return f"TokenAuthority(algorithm={ALGORITHM!r}, ttl={self.ttl!r})"

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, subject: int, username: str, role: Role | str) -> str:
        """Encode a signed JWT for the given identity snapshot.

        iat/exp are whole seconds (the JWT NumericDate convention); issued_at
        is truncated first so the claims read back by verify() equal the
        ones issued here.
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self.ttl
        payload: dict[str, Any] = {
            "sub": str(subject),
            "username": username,
            "role": Role(role).value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str) -> SessionClaims:
        """Verify signature, algorithm, claim shape and expiry; return the claims.

        Raises:
            TokenInvalid: signature mismatch, disallowed algorithm, malformed
                token, or missing/ill-typed claims.
            TokenExpired: everything checks out but now > expires_at.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM], options=_DECODE_OPTIONS)
        except JWTError as exc:
            raise TokenInvalid("Token signature or structure is invalid.") from exc

        claims = _claims_from_payload(payload)
        if self._clock() > claims.expires_at:
            raise TokenExpired("Token has expired.")
        return claims


def _claims_from_payload(payload: dict[str, Any]) -> SessionClaims:
    missing = [name for name in _REQUIRED_CLAIMS if name not in payload]
    if missing:
        raise TokenInvalid(f"Token is missing claims: {', '.join(missing)}.")

    try:
        subject = int(payload["sub"])
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise TokenInvalid("Token claims are malformed.") from exc

    role = Role.parse(payload["role"])
    username = payload["username"]
    if role is None or not isinstance(username, str):
        raise TokenInvalid("Token claims are malformed.")

    return SessionClaims(
        subject=subject,
        username=username,
        role=role,
        issued_at=issued_at,
        expires_at=expires_at,
    )
