"""
auth/passwords.py -- Password hashing capability (bcrypt).

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt.gensalt() draws a fresh random salt for every call, so two accounts
with the same password never share a digest.

The dummy digest enables timing equalization in AccountManager.login(): the
hasher runs even when the email is unknown, so response time does not reveal
whether an account exists [C1].

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from typing import Protocol

import bcrypt

# bcrypt input limit, counted in UTF-8 bytes rather than characters.
MAX_PASSWORD_BYTES = 72


class PasswordHasher(Protocol):
    """Password hashing/verification contract."""

    def hash(self, password: str) -> str: ...

    def verify(self, password: str, digest: str) -> bool: ...

    def verify_dummy(self, password: str) -> None: ...


class BcryptHasher:
    """bcrypt-backed PasswordHasher.

    bcrypt only accepts MAX_PASSWORD_BYTES of UTF-8 input; bcrypt 5 raises
    ValueError beyond that instead of truncating. Callers reject longer
    passwords before hashing (AccountManager.register, the request models).
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        # Computed once so the first unknown-email login is not measurably
        # slower than later ones.
        self._dummy_digest = self.hash("accounts_timing_dummy")

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, password: str, digest: str) -> bool:
        """Return True if the plaintext password matches the bcrypt digest."""
        try:
            return bcrypt.checkpw(password.encode("utf-8"), digest.encode("utf-8"))
        except ValueError:
            # Malformed digest or over-long password -- treat as mismatch.
            return False

    def verify_dummy(self, password: str) -> None:
        """Burn the same bcrypt work as a real check, discarding the result [C1]."""
        self.verify(password, self._dummy_digest)
