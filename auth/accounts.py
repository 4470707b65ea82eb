"""
auth/accounts.py -- Account workflows: register, login, profile, update, list.

AccountService is the one place that combines the store, the hasher, the
token authority and the access policy. Routes and the CLI call it; it never
sees a Request object.

Failure contract:
  Store conflicts come back from UserStore as Err(kind) and are raised here as
  AccountError subclasses. api/main.py maps each subclass to a status code.
  A wrong password is never an exception below this layer -- it is a False
  from PasswordHasher.verify().

Anti-enumeration:
  login() raises the same InvalidCredentials for an unknown username and a
  wrong password, and both paths run exactly one bcrypt check.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from auth.errors import AccessDenied, DuplicateUsername, InvalidCredentials, InvalidInput, NotFound
from auth.models import Identity, Role, SessionClaims
from auth.passwords import BCRYPT_MAX_BYTES, PasswordHasher, fits_bcrypt
from auth.policy import AccessPolicy
from auth.results import Err, Ok, StoreErrorKind, StoreResult
from auth.store import UserStore
from auth.tokens import TokenAuthority

logger = logging.getLogger("roster.auth")

USERNAME_MIN = 3
USERNAME_MAX = 32
PASSWORD_MIN = 8
PASSWORD_MAX = 32

_PASSWORD_RULE = f"Password must be {PASSWORD_MIN}-{PASSWORD_MAX} chars and at most {BCRYPT_MAX_BYTES} bytes"


def valid_username(username: Any) -> bool:
    return isinstance(username, str) and USERNAME_MIN <= len(username) <= USERNAME_MAX


def valid_password(password: Any) -> bool:
    """8-32 characters, and no more than bcrypt can read (72 bytes of UTF-8)."""
    return isinstance(password, str) and PASSWORD_MIN <= len(password) <= PASSWORD_MAX and fits_bcrypt(password)


@dataclass(frozen=True)
class LoginResult:
    token: str
    identity: Identity


class AccountService:
    """Account workflows over a UserStore.

    Usage:
        accounts = AccountService(store, PasswordHasher(), TokenAuthority(secret), AccessPolicy())
        accounts.register("alice", "password123")
        result = accounts.login("alice", "password123")
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenAuthority,
        policy: AccessPolicy,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.policy = policy

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, username: Any, password: Any) -> Identity:
        """Create a new identity with role "user".

        Raises InvalidInput for out-of-range lengths and DuplicateUsername if
        the name is taken. Nothing is written in either case.
        """
        if not valid_username(username) or not valid_password(password):
            raise InvalidInput(
                f"Invalid username or password. username: {USERNAME_MIN}-{USERNAME_MAX}, "
                f"password: {PASSWORD_MIN}-{PASSWORD_MAX}"
            )
        identity = self._insert(username, password, Role.USER)
        logger.info("Registered user_id=%s", identity.id)
        return identity

    def create_identity(self, username: Any, password: Any, role: Role | str = Role.USER) -> Identity:
        """Create an identity with an explicit role (CLI bootstrap path)."""
        if not valid_username(username):
            raise InvalidInput(f"Username must be {USERNAME_MIN}-{USERNAME_MAX} chars")
        if not valid_password(password):
            raise InvalidInput(_PASSWORD_RULE)
        parsed = Role.parse(role)
        if parsed is None:
            raise InvalidInput("Role must be 'user' or 'admin'")
        identity = self._insert(username, password, parsed)
        logger.info("Created user_id=%s with role=%s", identity.id, parsed.value)
        return identity

    def _insert(self, username: str, password: str, role: Role) -> Identity:
        result = self.store.insert(username, self.hasher.hash(password), role)
        match result:
            case Ok(value=identity):
                return identity
            case Err(kind=StoreErrorKind.DUPLICATE_USERNAME):
                raise DuplicateUsername("Username is already taken")
            case _:
                raise NotFound("User not found")

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, username: Any, password: Any) -> LoginResult:
        """Verify credentials and issue a session token.

        Raises InvalidInput if either field is not a string, and
        InvalidCredentials for any authentication failure.
        """
        if not isinstance(username, str) or not isinstance(password, str):
            raise InvalidInput("username and password are required")

        identity = self.store.find_by_username(username)
        if identity is None:
            # Equalize timing -- do NOT return before running bcrypt.
            self.hasher.verify_dummy(password)
            logger.info("Login failed: unknown username")
            raise InvalidCredentials()
        if not self.hasher.verify(password, identity.password_hash):
            logger.info("Login failed: bad password for user_id=%s", identity.id)
            raise InvalidCredentials()

        token = self.tokens.issue(identity.id, identity.username, identity.role)
        logger.info("Login succeeded for user_id=%s", identity.id)
        return LoginResult(token=token, identity=identity)

    # ------------------------------------------------------------------
    # Profile and listing
    # ------------------------------------------------------------------

    def profile(self, claims: SessionClaims) -> Identity:
        """Return the current stored identity behind the token's subject."""
        identity = self.store.find_by_id(claims.subject)
        if identity is None:
            raise NotFound()
        return identity

    def list_identities(self) -> list[Identity]:
        """All identities, oldest first. Callers gate this to admins."""
        return self.store.list_all()

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(
        self,
        caller: SessionClaims,
        target_id: int,
        username: Any = None,
        password: Any = None,
        role: Any = None,
    ) -> Identity:
        """Apply a self-or-admin update to target_id.

        Blank or non-string username/password values are skipped, not errors.
        role is applied only for admin callers and only when it names a valid
        Role; otherwise it is dropped silently.

        Raises:
            AccessDenied: caller is neither the target nor an admin.
            InvalidInput: a supplied field is out of range, or nothing is left
                to update.
            DuplicateUsername: the new username belongs to someone else.
            NotFound: target_id does not exist.
        """
        if not self.policy.can_modify(caller, target_id):
            logger.info("user_id=%s denied update of user_id=%s", caller.subject, target_id)
            raise AccessDenied()

        updates: dict[str, Any] = {}
        if isinstance(username, str) and username.strip():
            new_username = username.strip()
            if not valid_username(new_username):
                raise InvalidInput(f"Username must be {USERNAME_MIN}-{USERNAME_MAX} chars")
            updates["username"] = new_username
        if isinstance(password, str) and password:
            if not valid_password(password):
                raise InvalidInput(_PASSWORD_RULE)
            updates["password_hash"] = self.hasher.hash(password)
        new_role = self.policy.resolve_role_change(caller, role)
        if new_role is not None:
            updates["role"] = new_role

        if not updates:
            raise InvalidInput("No valid fields to update")

        identity = _unwrap_update(self.store.update(target_id, **updates))
        logger.info(
            "user_id=%s updated user_id=%s fields=%s",
            caller.subject,
            target_id,
            sorted(updates),
        )
        return identity


def _unwrap_update(result: StoreResult) -> Identity:
    match result:
        case Ok(value=identity):
            return identity
        case Err(kind=StoreErrorKind.DUPLICATE_USERNAME):
            raise DuplicateUsername("Username already exists")
        case _:
            raise NotFound()
