"""
auth/errors.py -- Domain error taxonomy for the account lifecycle.

Every error carries an HTTP status code and a machine-readable code so the
API layer can serialize it without knowing which operation raised it. The
messages are safe to show to clients: storage exceptions are translated before
they reach this hierarchy, never wrapped into it.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for all expected account-lifecycle failures."""

    status_code: int = 400
    code: str = "account_error"
    default_message: str = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AccountError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input."


class AlreadyVerifiedError(AccountError):
    status_code = 404
    code = "already_verified"
    default_message = "Verification has already been passed."


class UnauthorizedError(AccountError):
    status_code = 401
    code = "unauthorized"
    default_message = "Not authorized."


class NotFoundError(AccountError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class ConflictError(AccountError):
    status_code = 409
    code = "conflict"
    default_message = "Email in use."


class MailDeliveryError(AccountError):
    """Raised by mailers when a message could not be handed to the mail server."""

    status_code = 503
    code = "mail_unavailable"
    default_message = "Verification email could not be sent. Try again later."
