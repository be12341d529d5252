"""
auth/models.py -- Domain dataclasses for account entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and the account manager do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass

SUBSCRIPTION_TIERS = ("starter", "pro", "business")
DEFAULT_SUBSCRIPTION = "starter"


@dataclass
class Account:
    """A registered user's persisted identity and credential record.

    email is stored normalized (stripped, lower-cased); see
    auth.accounts.normalize_email.

    password_digest is the bcrypt output and must never leave the auth layer.
    Route handlers receive AccountProfile instead.

    verification_token is None once the account is verified. session_token is
    None while logged out; otherwise it holds the one JWT the gate accepts.
    """

    name: str
    email: str
    password_digest: str
    avatar_url: str
    id: str | None = None  # uuid4 hex, assigned by the store on insert
    subscription: str = DEFAULT_SUBSCRIPTION  # "starter" | "pro" | "business"
    session_token: str | None = None
    verification_token: str | None = None
    is_verified: bool = False
    created_at: str | None = None


@dataclass(frozen=True)
class AccountProfile:
    """Public projection of an Account -- safe to serialize to clients."""

    name: str
    email: str


@dataclass(frozen=True)
class AccountConfig:
    """Explicit configuration for AccountManager, built once at startup.

    verify_base_url is the origin that verification links point at; the
    manager appends /api/v1/auth/verify/{token}. When require_verification is
    False, accounts are created already verified and no mail is sent.
    """

    verify_base_url: str = "http://localhost:3000"
    require_verification: bool = True
