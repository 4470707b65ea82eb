"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x
rejects. Direct usage has no compatibility shim.

Every hash() call draws a fresh salt; the algorithm, cost and salt are all
embedded in the returned "$2b$<cost>$..." string, so verify() needs nothing
but the stored value.

Length policy (8-32 chars, at most 72 bytes of UTF-8) is enforced by the
caller. Input is never truncated: hash() refuses anything past bcrypt's
72-byte limit and verify() reports it as a mismatch, so two passwords that
share a 72-byte prefix can never stand in for each other.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 10

# bcrypt only reads the first 72 bytes of its input.
BCRYPT_MAX_BYTES = 72


def fits_bcrypt(plain: str) -> bool:
    return len(plain.encode("utf-8")) <= BCRYPT_MAX_BYTES


class PasswordHasher:
    """Salted adaptive hashing with a fixed work factor.

    Usage:
        hasher = PasswordHasher(rounds=10)
        stored = hasher.hash("password123")
        hasher.verify("password123", stored)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        # Computed once so verify_dummy() costs exactly one real check.
        self._dummy_hash = self.hash("roster_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of plain using a fresh salt.

        Raises ValueError if plain is longer than 72 bytes of UTF-8.
        """
        if not fits_bcrypt(plain):
            raise ValueError(f"Password exceeds {BCRYPT_MAX_BYTES} bytes")
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed.

        A corrupted or non-bcrypt stored value is a verification failure, not
        an error: callers cannot tell it apart from a wrong password. So is a
        plain value over 72 bytes, since no stored hash can have come from one.
        """
        if not isinstance(plain, str) or not fits_bcrypt(plain):
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False

    def verify_dummy(self, plain: str) -> bool:
        """Spend one bcrypt check on a hash nobody owns. Always False.

        Called when a login names an unknown user so the response time
        matches the wrong-password path.
        """
        self.verify(plain, self._dummy_hash)
        return False
