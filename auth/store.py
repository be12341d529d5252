"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_account is the mapper. The account
manager and the gate never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Invariants owned here:
  UNIQUE(email) is enforced by the schema. create_account() lets
  sqlalchemy.exc.IntegrityError propagate -- it is the authoritative
  duplicate-email signal, not any read-before-write check.

  mark_verified() flips is_verified and clears verification_token in one
  conditional UPDATE keyed on the token, so a token can only ever be
  consumed once, even by two concurrent requests.

Each method opens its own connection and commits before returning: single
document atomic writes, no multi-statement transactions.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine

from auth.models import Account

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_digest", Text, nullable=False),
    Column("subscription", String(20), nullable=False, server_default="starter"),
    Column("avatar_url", Text, nullable=False),
    Column("session_token", Text),  # NULL while logged out
    Column("verification_token", String(64), unique=True),  # NULL once verified
    Column("is_verified", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///accounts.db")
        account_id = store.create_account(Account(name="Ann", email="ann@example.com", ...))
        account = store.get_by_email("ann@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> str:
        """Insert a new account and return its assigned id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers translate that into ConflictError.
        """
        account_id = uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _accounts.insert().values(
                    id=account_id,
                    name=account.name,
                    email=account.email,
                    password_digest=account.password_digest,
                    subscription=account.subscription,
                    avatar_url=account.avatar_url,
                    session_token=account.session_token,
                    verification_token=account.verification_token,
                    is_verified=account.is_verified,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return account_id

    def mark_verified(self, verification_token: str) -> bool:
        """Consume a verification token.

        Returns True if exactly one unverified account held the token and is
        now verified, False otherwise (unknown or already consumed).
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.verification_token == verification_token)
                .values(is_verified=True, verification_token=None)
            )
            conn.commit()
        return result.rowcount > 0

    def set_session_token(self, account_id: str, token: str | None) -> bool:
        """Store (or clear, with None) the active session token. Last write wins."""
        return self._update(account_id, session_token=token)

    def update_avatar_url(self, account_id: str, avatar_url: str) -> bool:
        return self._update(account_id, avatar_url=avatar_url)

    def update_subscription(self, account_id: str, subscription: str) -> bool:
        return self._update(account_id, subscription=subscription)

    def _update(self, account_id: str, **fields) -> bool:
        """Returns True if a row was updated, False if account_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_id(self, account_id: str) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        return self._fetch_one(_accounts.c.id == account_id)

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by exact (already normalized) email."""
        return self._fetch_one(_accounts.c.email == email)

    def get_by_verification_token(self, verification_token: str) -> Account | None:
        return self._fetch_one(_accounts.c.verification_token == verification_token)

    def count_by_email(self, email: str) -> int:
        with self.engine.connect() as conn:
            query = select(func.count()).select_from(_accounts).where(_accounts.c.email == email)
            result = conn.execute(query).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            return False
        return True

    def _fetch_one(self, condition) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(condition)).fetchone()
        return _row_to_account(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        password_digest=row.password_digest,
        subscription=row.subscription,
        avatar_url=row.avatar_url,
        session_token=row.session_token,
        verification_token=row.verification_token,
        is_verified=bool(row.is_verified),
        created_at=row.created_at,
    )
