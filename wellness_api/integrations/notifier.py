"""
Outbound email.

``EmailNotifier`` delivers over SMTP with STARTTLS. Every failure, including
missing SMTP configuration, surfaces as ``UpstreamFailure``.
"""
import logging
import smtplib
from email.message import EmailMessage

from wellness_api import config
from wellness_api.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class EmailNotifier:
    def __init__(self, host=None, port=None, username=None, password=None,
                 from_name=None, from_email=None, timeout=10):
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.username = username or config.SMTP_EMAIL
        self.password = password or config.SMTP_PASSWORD
        self.from_name = from_name or config.FROM_NAME
        self.from_email = from_email or config.FROM_EMAIL
        self.timeout = timeout

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not self.host:
            logger.warning("SMTP_HOST not configured, cannot email %s", recipient)
            raise UpstreamFailure("Email could not be sent")

        message = EmailMessage()
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Email to %s failed: %s", recipient, exc)
            raise UpstreamFailure("Email could not be sent") from exc

        logger.info("Email sent to %s: %s", recipient, subject)


def get_notifier() -> EmailNotifier:
    """FastAPI dependency; overridden with a fake in tests"""
    return EmailNotifier()
