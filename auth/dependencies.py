"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Clients authenticate with an Authorization: Bearer <token> header carrying the
session token returned by POST /auth/login. The header is handed to the
SessionGate on app.state, which enforces signature, expiry and revocation.

get_current_account() raises UnauthorizedError (serialized as 401 by the API
exception handler) when the request is not authenticated.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.gate import SessionGate
from auth.models import Account


def bearer_token(request: Request) -> str | None:
    """Return the token from an Authorization: Bearer header, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_account(request: Request) -> Account:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: Account = Depends(get_current_account)): ...
    """
    gate: SessionGate = request.app.state.gate
    return gate.authenticate(bearer_token(request))
