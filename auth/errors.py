"""
auth/errors.py -- Exception taxonomy for the auth package.

Two families:
  TokenError     -- raised by TokenAuthority.verify(). AuthGateway catches
                    these and turns them into a Rejected result; they never
                    reach a route handler.
  AccountError   -- raised by AccountService. Each subclass carries a stable
                    machine-readable code; api/main.py maps the class to an
                    HTTP status in one place.

Messages are safe to show to clients. None of them include store errors,
hashes, or secrets.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenInvalid(TokenError):
    """Bad signature, wrong algorithm, malformed structure, or bad claims."""


class TokenExpired(TokenError):
    """Signature and claims are valid but the expiry instant has passed."""


class AccountError(Exception):
    """Base class for failures surfaced by account workflows."""

    code = "account_error"
    default_message = "Request could not be completed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AccountError):
    code = "invalid_input"
    default_message = "Invalid input."


class DuplicateUsername(AccountError):
    code = "conflict"
    default_message = "Username is already taken"


class InvalidCredentials(AccountError):
    """Unknown username or wrong password -- deliberately indistinguishable."""

    code = "bad_credentials"
    default_message = "Invalid credentials"


class AccessDenied(AccountError):
    """Authenticated caller is neither the target identity nor an admin."""

    code = "forbidden"
    default_message = "Forbidden"


class NotFound(AccountError):
    code = "not_found"
    default_message = "User not found"
