"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, the token
authority and routes do the work; these types only carry shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """The two roles a principal can hold. New identities start as USER."""

    USER = "user"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: object) -> Role | None:
        """Return the matching Role, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class Identity:
    """A registered principal.

    password_hash is the bcrypt string and must never leave the service --
    routes map Identity to a response model that omits it.

    id is None before the record is written to the database.
    """

    username: str
    password_hash: str
    role: Role = Role.USER
    id: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class SessionClaims:
    """The verified payload of a session token.

    username and role are a snapshot taken at issuance. They are not re-read
    from the store on each request, so a role change takes effect on the
    next login.
    """

    subject: int
    username: str
    role: Role
    issued_at: datetime
    expires_at: datetime

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN
