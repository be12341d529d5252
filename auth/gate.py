"""
auth/gate.py -- Bearer token authorization gate.

A session token is accepted only if all of these hold:
  1. The JWT signature and expiry verify (SessionTokenIssuer.verify).
  2. The account named by the sub claim still exists.
  3. The account's stored session_token equals the presented token.

Check 3 is what makes logout a real revocation: after logout the JWT is still
cryptographically valid until it expires, but the store no longer holds it.
A newer login also supersedes older tokens the same way.

Every failure raises the same UnauthorizedError so callers cannot tell which
check rejected the token.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hmac

from auth.errors import UnauthorizedError
from auth.models import Account
from auth.store import AccountStore
from auth.tokens import SessionTokenIssuer


class SessionGate:
    def __init__(self, store: AccountStore, tokens: SessionTokenIssuer) -> None:
        self.store = store
        self.tokens = tokens

    def authenticate(self, token: str | None) -> Account:
        """Return the Account bound to token, or raise UnauthorizedError."""
        if not token:
            raise UnauthorizedError()
        claims = self.tokens.verify(token)
        if claims is None:
            raise UnauthorizedError()
        account = self.store.get_by_id(claims["sub"])
        if account is None or account.session_token is None:
            raise UnauthorizedError()
        if not hmac.compare_digest(account.session_token.encode(), token.encode()):
            raise UnauthorizedError()
        return account
