"""
auth/accounts.py -- Account lifecycle: signup, verification, login, logout.

AccountManager orchestrates the store, the password hasher, the token issuers,
the mailer and (optionally) avatar storage. Every collaborator is passed in at
construction; nothing is read from the environment at call time, so tests
substitute fakes freely.

Results are plain values (AccountProfile, token strings). Failures are
AccountError subclasses; storage exceptions are translated here and never
reach the caller.

Email verification state machine:
  signup  -> is_verified=False, verification_token=<opaque>
  confirm -> is_verified=True,  verification_token=None   (single use)
  login is refused with 401 until confirmed.

Security:
  [C1] login() runs the hasher even when the email is unknown, and returns the
       same error for "no such email" and "wrong password". Neither timing nor
       message reveals whether an account exists.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from auth.avatars import ALLOWED_EXTENSIONS, LocalAvatarStorage, avatar_extension, default_avatar_url
from auth.errors import (
    AlreadyVerifiedError,
    ConflictError,
    MailDeliveryError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from auth.mail import Mailer, build_verification_message, verification_link
from auth.models import SUBSCRIPTION_TIERS, Account, AccountConfig, AccountProfile
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher
from auth.store import AccountStore
from auth.tokens import SessionTokenIssuer, generate_verification_token

logger = logging.getLogger("accounts.auth")

EMAIL_PATTERN = r"^[a-z0-9._%+-]+@[a-z0-9-]+(\.[a-z0-9-]+)*\.[a-z]{2,}$"
MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(EMAIL_PATTERN)

_BAD_CREDENTIALS = "Email or password is wrong"


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively: strip and lower-case everywhere."""
    return (email or "").strip().lower()


def password_fits_bcrypt(password: str) -> bool:
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


def _require_email(email: str) -> str:
    normalized = normalize_email(email)
    if not _EMAIL_RE.match(normalized):
        raise ValidationError("Email must look like local@domain.tld")
    return normalized


class AccountManager:
    """Orchestrates the credential and session lifecycle.

    avatars is optional: when None, update_avatar() reports the feature as
    unavailable. Verification is switched by config.require_verification.
    """

    def __init__(
        self,
        store: AccountStore,
        hasher: PasswordHasher,
        tokens: SessionTokenIssuer,
        mailer: Mailer,
        config: AccountConfig,
        avatars: LocalAvatarStorage | None = None,
        mail_sender: str = "no-reply@localhost",
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.mailer = mailer
        self.config = config
        self.avatars = avatars
        self.mail_sender = mail_sender

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str) -> AccountProfile:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        email = _require_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not password_fits_bcrypt(password):
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        # Fast path only; the UNIQUE constraint below is what actually decides.
        if self.store.get_by_email(email) is not None:
            raise ConflictError()

        verify = self.config.require_verification
        account = Account(
            name=name,
            email=email,
            password_digest=self.hasher.hash(password),
            avatar_url=default_avatar_url(email),
            verification_token=generate_verification_token() if verify else None,
            is_verified=not verify,
        )
        try:
            account.id = self.store.create_account(account)
        except IntegrityError as exc:
            # A concurrent signup for the same email won the race.
            raise ConflictError() from exc
        logger.info("Account registered: %s", email)

        if verify:
            try:
                self._send_verification(account)
            except MailDeliveryError:
                # The account stays; the user can ask for a resend.
                logger.warning("Verification mail failed for new account %s; resend required", email)

        return AccountProfile(name=account.name, email=account.email)

    def confirm_verification(self, verification_token: str) -> None:
        """Consume a verification token. Raises NotFoundError if unknown or already used."""
        account = self.store.get_by_verification_token(verification_token) if verification_token else None
        # mark_verified() is the single-use guard; the lookup only names the account.
        if account is None or not self.store.mark_verified(verification_token):
            raise NotFoundError("Not Found")
        logger.info("Account verified: %s", account.email)

    def resend_verification(self, email: str) -> None:
        """Re-send the existing (unrotated) verification token."""
        account = self.store.get_by_email(_require_email(email))
        if account is None:
            raise NotFoundError("Not Found")
        if account.is_verified or not account.verification_token:
            raise AlreadyVerifiedError()
        self._send_verification(account)

    def _send_verification(self, account: Account) -> None:
        link = verification_link(self.config.verify_base_url, account.verification_token)
        self.mailer.send(build_verification_message(self.mail_sender, account.email, link))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> str:
        """Verify credentials and issue a session token (stored on the account)."""
        account = self.store.get_by_email(normalize_email(email))
        if account is None:
            self.hasher.verify_dummy(password or "")  # [C1]
            raise UnauthorizedError(_BAD_CREDENTIALS)
        if not self.hasher.verify(password or "", account.password_digest):
            raise UnauthorizedError(_BAD_CREDENTIALS)
        if not account.is_verified:
            raise UnauthorizedError("Email not verified")

        token = self.tokens.sign(account.id)
        self.store.set_session_token(account.id, token)
        logger.info("Login: %s", account.email)
        return token

    def logout(self, account_id: str) -> None:
        if not self.store.set_session_token(account_id, None):
            raise UnauthorizedError()
        logger.info("Logout: account %s", account_id)

    def current_account(self, account_id: str) -> AccountProfile:
        account = self.store.get_by_id(account_id)
        if account is None:
            raise UnauthorizedError()
        return AccountProfile(name=account.name, email=account.email)

    # ------------------------------------------------------------------
    # Profile updates
    # ------------------------------------------------------------------

    def update_avatar(self, account_id: str, filename: str, data: bytes) -> str:
        """Store a new avatar for the account and return its avatarURL.

        The record is updated only after the file is in place.
        """
        if self.avatars is None:
            raise NotFoundError("Avatar uploads are disabled")
        extension = avatar_extension(filename)
        if extension not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"Avatar must be one of: {', '.join(sorted(ALLOWED_EXTENSIONS))}")
        if not data:
            raise ValidationError("Avatar file is empty")

        avatar_url = self.avatars.save(account_id, extension, data)
        if not self.store.update_avatar_url(account_id, avatar_url):
            raise UnauthorizedError()
        self.avatars.remove_stale(account_id, avatar_url)
        return avatar_url

    def update_subscription(self, account_id: str, subscription: str) -> Account:
        if subscription not in SUBSCRIPTION_TIERS:
            raise ValidationError(f"Subscription must be one of: {', '.join(SUBSCRIPTION_TIERS)}")
        if not self.store.update_subscription(account_id, subscription):
            raise UnauthorizedError()
        logger.info("Subscription for account %s set to %s", account_id, subscription)
        return self.store.get_by_id(account_id)
