"""
auth/tokens.py -- Session and verification token issuance.

Security design decisions:
  Session tokens: python-jose with HS256. Tokens are signed with the
       configured secret and carry the account id (sub), issue time, expiry
       and a random jti. The jti makes two logins in the same second produce
       distinct tokens, so a token revoked by logout can never be reissued
       byte-for-byte. Verification returns None on any failure -- the gate
       turns that into a 401.

  Verification tokens: secrets.token_urlsafe(32) gives 256 bits of entropy.
       They are opaque, URL-safe (they travel in a link path segment) and
       collision-resistant without any lookup.

The issuer takes its secret and TTL at construction. It never reads Settings,
so tests can build one with any key.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

_ALGORITHM = "HS256"


class SessionTokenIssuer:
    """Signs and verifies time-limited bearer tokens bound to an account id.

    Usage:
        issuer = SessionTokenIssuer(secret_key, ttl_seconds=3600)
        token = issuer.sign("3f2a...")
        claims = issuer.verify(token)   # {"sub": "3f2a...", ...} or None
    """

    def __init__(self, secret_key: str, ttl_seconds: int = 3600) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds

    def sign(self, account_id: str, ttl_seconds: int = 0) -> str:
        """Encode a signed JWT for account_id.

        ttl_seconds overrides the issuer default when positive.
        """
        duration = ttl_seconds if ttl_seconds > 0 else self.ttl_seconds
        now = datetime.now(timezone.utc)
        payload = {
            "sub": account_id,
            "iat": now,
            "exp": now + timedelta(seconds=duration),
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> dict | None:
        """Decode and verify a JWT. Returns the claims dict or None on any failure.

        Signature, expiry and the presence of a string sub claim are all
        checked here; revocation is the gate's job.
        """
        try:
            claims = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if not isinstance(claims.get("sub"), str) or not claims["sub"]:
            return None
        return claims


def generate_verification_token() -> str:
    """Return a new opaque, URL-safe verification token (256 bits of entropy)."""
    return secrets.token_urlsafe(32)
