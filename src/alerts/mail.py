"""SMTP delivery of alert messages."""

import asyncio
import smtplib
from email.mime.text import MIMEText

from src.helpers.config_models import EmailConfig
from src.helpers.constants import ALERT_TITLE, DEFAULT_TIMEOUT
from src.helpers.logging import get_logger


logger = get_logger(__name__)

SMTP_SSL_PORT = 465
"""Port on which the SMTP server expects implicit TLS"""


class MailSender:
    """Sends plain text alert mails through one SMTP account."""

    def __init__(self, settings: EmailConfig, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the sender.

        Args:
            settings: Fully configured SMTP settings
            timeout: SMTP connection timeout in seconds

        Raises:
            ValueError: If the settings are incomplete
        """
        if not settings.is_configured:
            msg = "SMTP settings are incomplete"
            raise ValueError(msg)
        self.settings = settings
        self.timeout = timeout

    @classmethod
    def from_config(cls, settings: EmailConfig) -> "MailSender | None":
        """Build a sender, or None when mail is not configured."""
        if not settings.is_configured:
            return None
        return cls(settings)

    def _build(self, message: str) -> MIMEText:
        mail = MIMEText(message, "plain", "utf-8")
        mail["Subject"] = ALERT_TITLE
        mail["From"] = self.settings.smtp_account
        mail["To"] = ", ".join(self.settings.receiver)
        return mail

    def _send_blocking(self, message: str) -> None:
        settings = self.settings
        mail = self._build(message)
        port = settings.smtp_port or 0

        if port == SMTP_SSL_PORT:
            with smtplib.SMTP_SSL(settings.smtp_endpoint, port, timeout=self.timeout) as server:
                server.login(settings.smtp_account, settings.smtp_password)
                server.sendmail(settings.smtp_account, settings.receiver, mail.as_string())
            return

        with smtplib.SMTP(settings.smtp_endpoint, port, timeout=self.timeout) as server:
            server.starttls()
            server.login(settings.smtp_account, settings.smtp_password)
            server.sendmail(settings.smtp_account, settings.receiver, mail.as_string())

    async def send(self, message: str) -> bool:
        """Send ``message`` to every receiver.

        Returns:
            bool: True if the SMTP server accepted the mail
        """
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send alert email via %s: %s", self.settings.smtp_endpoint, e)
            return False

        logger.info("Sent alert email to %d receivers", len(self.settings.receiver))
        return True


__all__ = [
    "MailSender",
]
