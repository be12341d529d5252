"""
tests/conftest.py -- Shared test fixtures for the account service.

This module provides:
  - RecordingMailer: in-memory Mailer fake that captures messages (and can fail)
  - manager / gate: AccountManager and SessionGate over an in-memory store
  - api_client: TestClient with a patched lifespan wired to isolated stores

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

bcrypt runs at cost 4 everywhere in tests; production cost is configured via
BCRYPT_ROUNDS.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from contextlib import asynccontextmanager
from email.message import EmailMessage

# CRITICAL: Set DEBUG before any api/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, wire_services
from auth.accounts import AccountManager
from auth.avatars import LocalAvatarStorage
from auth.errors import MailDeliveryError
from auth.gate import SessionGate
from auth.models import AccountConfig
from auth.passwords import BcryptHasher
from auth.store import AccountStore
from auth.tokens import SessionTokenIssuer
from core.config import Settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"

_TOKEN_RE = re.compile(r"/api/v1/auth/verify/([A-Za-z0-9_\-]+)")


class RecordingMailer:
    """Mailer fake: keeps every message; raises MailDeliveryError when fail=True."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []
        self.fail = False

    def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise MailDeliveryError()
        self.sent.append(message)

    def last_token_for(self, email: str) -> str:
        """Return the verification token from the newest message sent to email."""
        for message in reversed(self.sent):
            if message["To"] == email:
                body = message.get_body(preferencelist=("plain",)).get_content()
                match = _TOKEN_RE.search(body)
                assert match, f"No verification link in message body: {body!r}"
                return match.group(1)
        raise AssertionError(f"No mail sent to {email}")


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> BcryptHasher:
    return BcryptHasher(rounds=4)


@pytest.fixture
def secret_key() -> str:
    return TEST_SECRET


@pytest.fixture
def tokens(secret_key) -> SessionTokenIssuer:
    return SessionTokenIssuer(secret_key, ttl_seconds=3600)


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def manager(store, hasher, tokens, mailer, tmp_path) -> AccountManager:
    return AccountManager(
        store=store,
        hasher=hasher,
        tokens=tokens,
        mailer=mailer,
        config=AccountConfig(verify_base_url="http://testserver"),
        avatars=LocalAvatarStorage(tmp_path / "avatars"),
    )


@pytest.fixture
def gate(store, tokens) -> SessionGate:
    return SessionGate(store, tokens)


@pytest.fixture
def verified_account(manager, mailer) -> tuple[str, str]:
    """Register and verify ann@example.com; return (email, password)."""
    manager.register("Ann", "ann@example.com", "secret1")
    manager.confirm_verification(mailer.last_token_for("ann@example.com"))
    return "ann@example.com", "secret1"


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, settings: Settings, mailer: RecordingMailer):
    """Return an async context manager that replaces the real lifespan.

    Wires the isolated test store and the recording mailer into app.state
    through the same wire_services() the real lifespan uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, store, settings, mailer)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request, tmp_path_factory) -> Generator[tuple[TestClient, RecordingMailer], None, None]:
    """Yield (client, mailer) for API integration tests.

    Each test module gets its own named in-memory DB and avatar directory, so
    modules never see each other's accounts.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    store = AccountStore(f"sqlite:///file:test_accounts_{suffix}?mode=memory&cache=shared&uri=true")
    settings = Settings(
        debug=True,
        secret_key=TEST_SECRET,
        bcrypt_rounds=4,
        avatars_dir=tmp_path_factory.mktemp(f"avatars_{suffix}"),
        avatar_max_bytes=1024,
        public_base_url="http://testserver",
    )
    mailer = RecordingMailer()

    app.router.lifespan_context = _patch_lifespan(store, settings, mailer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, mailer

    store.close()


@pytest.fixture(scope="module")
def signup_and_login(api_client):
    """Return a helper that registers, verifies and logs in an account over HTTP."""
    client, mailer = api_client

    def _signup_and_login(email: str, password: str = "secret1") -> str:
        resp = client.post("/api/v1/auth/signup", json={"name": "Tester", "email": email, "password": password})
        assert resp.status_code == 201, resp.text
        token = mailer.last_token_for(email)
        assert client.get(f"/api/v1/auth/verify/{token}").status_code == 200
        resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return _signup_and_login
