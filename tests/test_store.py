"""Unit tests for auth/store.py -- AccountStore persistence.

Covers:
- create_account() assigns an opaque id and created_at
- UNIQUE(email) raises IntegrityError
- mark_verified() consumes a token exactly once
- set_session_token() / update_* report missing accounts
- ping() for the health endpoint
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Account


def _account(email: str = "ann@example.com", token: str | None = "tok-1") -> Account:
    return Account(
        name="Ann",
        email=email,
        password_digest="$2b$04$digest",
        avatar_url="https://www.gravatar.com/avatar/x",
        verification_token=token,
    )


def test_create_assigns_id_and_timestamp(store) -> None:
    account_id = store.create_account(_account())
    assert len(account_id) == 32
    account = store.get_by_id(account_id)
    assert account.email == "ann@example.com"
    assert account.created_at
    assert account.is_verified is False


def test_ids_are_distinct(store) -> None:
    first = store.create_account(_account("a@example.com", "tok-a"))
    second = store.create_account(_account("b@example.com", "tok-b"))
    assert first != second


def test_duplicate_email_raises_integrity_error(store) -> None:
    store.create_account(_account(token="tok-1"))
    with pytest.raises(IntegrityError):
        store.create_account(_account(token="tok-2"))
    assert store.count_by_email("ann@example.com") == 1


def test_mark_verified_is_single_use(store) -> None:
    account_id = store.create_account(_account())
    assert store.get_by_verification_token("tok-1").id == account_id

    assert store.mark_verified("tok-1") is True
    assert store.mark_verified("tok-1") is False

    account = store.get_by_id(account_id)
    assert account.is_verified is True
    assert account.verification_token is None
    assert store.get_by_verification_token("tok-1") is None


def test_unverified_accounts_without_tokens_coexist(store) -> None:
    """NULL verification tokens must not collide under the UNIQUE index."""
    store.create_account(_account("a@example.com", None))
    store.create_account(_account("b@example.com", None))
    assert store.count_by_email("a@example.com") == 1
    assert store.count_by_email("b@example.com") == 1


def test_session_token_set_and_clear(store) -> None:
    account_id = store.create_account(_account())
    assert store.set_session_token(account_id, "jwt") is True
    assert store.get_by_id(account_id).session_token == "jwt"
    assert store.set_session_token(account_id, None) is True
    assert store.get_by_id(account_id).session_token is None


def test_updates_report_missing_account(store) -> None:
    assert store.set_session_token("missing", "jwt") is False
    assert store.update_avatar_url("missing", "avatars/x.png") is False
    assert store.update_subscription("missing", "pro") is False


def test_lookups_return_none_when_absent(store) -> None:
    assert store.get_by_id("missing") is None
    assert store.get_by_email("nobody@example.com") is None


def test_ping(store) -> None:
    assert store.ping() is True
