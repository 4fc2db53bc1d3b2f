"""
Reminder email delivery.

Transports perform one blocking send and raise DeliveryFailure on error.
The Notifier runs a transport off the event loop, makes exactly one attempt,
and never lets a failure escape.
"""
import asyncio
import smtplib
from email.message import EmailMessage
from typing import Protocol

from app.config import Settings
from app.utils import metrics
from app.utils.logger import logger


class DeliveryFailure(Exception):
    """Mail transport could not deliver a message."""


class MailTransport(Protocol):
    def send(self, sender: str, recipient: str, subject: str, text: str) -> None: ...


class SmtpMailTransport:
    def __init__(self, host: str, port: int, username: str = "", password: str = "",
                 use_tls: bool = True, timeout: float = 30.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, sender: str, recipient: str, subject: str, text: str) -> None:
        message = EmailMessage()
        message["From"] = sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(text)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryFailure(f"SMTP delivery to {recipient} failed: {exc}") from exc


class LogMailTransport:
    """Logs reminders instead of sending them (no SMTP host configured)."""

    def send(self, sender: str, recipient: str, subject: str, text: str) -> None:
        logger.info(f"[DRY-RUN] Would email {recipient}: {subject}", extra={"recipient": recipient})


def build_transport(settings: Settings) -> MailTransport:
    if not settings.mail_host:
        return LogMailTransport()
    return SmtpMailTransport(
        host=settings.mail_host,
        port=settings.mail_port,
        username=settings.mail_user,
        password=settings.mail_password,
        use_tls=settings.mail_use_tls,
    )


class Notifier:
    def __init__(self, transport: MailTransport, sender: str):
        self.transport = transport
        self.sender = sender

    async def notify(self, recipient: str, subject: str, body: str) -> bool:
        """Attempt one delivery. Returns True on success; failures are logged, not raised."""
        try:
            async with metrics.track_duration("smtp", "send"):
                await asyncio.to_thread(self.transport.send, self.sender, recipient, subject, body)
        except Exception as exc:
            metrics.inc("reminders.failed")
            logger.error(
                "reminder.delivery_failed",
                extra={
                    "recipient": recipient,
                    "error": str(exc)[:500],
                    "error_type": type(exc).__name__,
                },
            )
            return False

        metrics.inc("reminders.sent")
        logger.info("reminder.sent", extra={"recipient": recipient})
        return True
