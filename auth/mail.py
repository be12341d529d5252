"""
auth/mail.py -- Verification email composition and delivery.

Two mailers ship with the service:
  SmtpMailer -- smtplib over STARTTLS, used when SMTP_HOST is configured.
  LogMailer  -- writes the message to the log instead of sending it. Used in
                development when no SMTP server is configured, so the
                verification link can be copied from the console.

Both raise MailDeliveryError on failure. The account manager decides whether
a failure is fatal (resend) or only reportable (signup).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from auth.errors import MailDeliveryError

logger = logging.getLogger("accounts.mail")

VERIFY_PATH = "/api/v1/auth/verify/"


class Mailer(Protocol):
    def send(self, message: EmailMessage) -> None: ...


def verification_link(base_url: str, verification_token: str) -> str:
    return f"{base_url.rstrip('/')}{VERIFY_PATH}{verification_token}"


def build_verification_message(sender: str, recipient: str, link: str) -> EmailMessage:
    """Compose the "prove your email" message with plain-text and HTML parts."""
    message = EmailMessage()
    message["From"] = sender
    message["To"] = recipient
    message["Subject"] = "Prove your email"
    message.set_content(f"Open this link to confirm your email:\n\n{link}\n")
    message.add_alternative(
        f'<p><a target="_blank" href="{link}">Press here to confirm your email</a></p>',
        subtype="html",
    )
    return message


class SmtpMailer:
    """Delivers messages through an SMTP relay.

    A new connection is opened per message. Verification mail is rare enough
    that pooling connections buys nothing.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP error sending mail to %s: %s", message["To"], exc)
            raise MailDeliveryError() from exc
        logger.info("Mail sent to %s (%s)", message["To"], message["Subject"])


class LogMailer:
    """Development mailer: logs the plain-text body instead of sending it."""

    def send(self, message: EmailMessage) -> None:
        body = message.get_body(preferencelist=("plain",))
        logger.info(
            "Mail delivery disabled (SMTP_HOST not set). To: %s Subject: %s\n%s",
            message["To"],
            message["Subject"],
            body.get_content() if body is not None else "",
        )
