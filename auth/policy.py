"""
auth/policy.py -- Access-control decisions for identity operations.

Two kinds of permission exist:
  Ownership -- the caller's token subject is the target identity.
  Role      -- the caller's token says admin.

Every function here is a pure decision over SessionClaims. Nothing reads the
store: the role in the token is trusted until the token expires.

Role changes are the one subtle case. Only an admin may set a role, and only
to "user" or "admin". An unauthorized or unknown role value is dropped from
the update rather than rejected, so a non-admin learns nothing about which
values exist.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from auth.models import Role, SessionClaims

logger = logging.getLogger("roster.auth")


class AccessPolicy:
    """Self-or-admin policy used by mutating identity operations."""

    def can_modify(self, caller: SessionClaims, target_id: int) -> bool:
        """True if the caller is the target identity or an admin."""
        return caller.subject == target_id or caller.role is Role.ADMIN

    def can_assign_role(self, caller: SessionClaims) -> bool:
        return caller.role is Role.ADMIN

    def require_role(self, claims: SessionClaims, allowed: Iterable[Role | str]) -> bool:
        """True if the caller's role is one of allowed."""
        return claims.role in {Role(r) for r in allowed}

    def resolve_role_change(self, caller: SessionClaims, requested: object) -> Role | None:
        """Return the role an update may apply, or None to leave role untouched.

        None covers three cases: no role requested, caller is not an admin,
        or the requested value is not a valid Role.
        """
        if requested is None:
            return None
        if not self.can_assign_role(caller):
            logger.info("Ignoring role change requested by non-admin user_id=%s", caller.subject)
            return None
        role = Role.parse(requested)
        if role is None:
            logger.info("Ignoring unrecognised role value requested by user_id=%s", caller.subject)
        return role
