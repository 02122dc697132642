"""Outbound mail transports.

The transport is built from settings per request through ``get_mailer`` so
tests can swap it via ``app.dependency_overrides``.
"""
import logging
from email.message import EmailMessage

import aiosmtplib

from event_manager.config import settings

logger = logging.getLogger(__name__)


class MailTransport:
    """Interface: deliver one plain-text message."""

    async def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError


class SmtpMailTransport(MailTransport):
    def __init__(self, host: str, port: int, sender: str,
                 username: str = "", password: str = "", use_tls: bool = True):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    async def send(self, to: str, subject: str, body: str) -> None:
        message = self.build_message(to, subject, body)
        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            start_tls=self.use_tls,
            username=self.username or None,
            password=self.password or None,
        )
        logger.info("Sent mail '%s' via %s", subject, self.host)


class LoggingMailTransport(MailTransport):
    """Development transport: logs instead of delivering."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Mail not sent (no MAIL_HOST configured): '%s' to %s", subject, to)


def get_mailer() -> MailTransport:
    """FastAPI dependency returning the configured transport."""
    if not settings.MAIL_HOST:
        return LoggingMailTransport()
    return SmtpMailTransport(
        host=settings.MAIL_HOST,
        port=settings.MAIL_PORT,
        sender=settings.MAIL_FROM,
        username=settings.MAIL_USERNAME,
        password=settings.MAIL_PASSWORD,
        use_tls=settings.MAIL_USE_TLS,
    )
