"""
auth/results.py -- Tagged result types passed between auth layers.

StoreResult is what UserStore.insert()/update() return instead of letting
IntegrityError escape: Ok(identity) on success, Err(kind) on a uniqueness
conflict or a missing row.

AuthResult is what AuthGateway returns: Authenticated(claims) or
Rejected(kind). Callers consume both with match statements:

    match gateway.authenticate(header):
        case Authenticated(claims=claims):
            ...
        case Rejected(kind=kind):
            ...

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

from auth.models import Identity, SessionClaims

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Store results
# ---------------------------------------------------------------------------


class StoreErrorKind(str, Enum):
    DUPLICATE_USERNAME = "duplicate_username"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: StoreErrorKind


StoreResult = Union[Ok[Identity], Err]


# ---------------------------------------------------------------------------
# Gateway results
# ---------------------------------------------------------------------------


class RejectionKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_OR_EXPIRED_CREDENTIAL = "invalid_token"
    UNAUTHENTICATED = "unauthorized"
    INSUFFICIENT_ROLE = "forbidden"


@dataclass(frozen=True)
class Authenticated:
    claims: SessionClaims


@dataclass(frozen=True)
class Rejected:
    kind: RejectionKind


AuthResult = Union[Authenticated, Rejected]
