"""Email delivery for account verification and password reset."""

import logging
import smtplib
from email.message import EmailMessage

from src.config import Settings, get_settings
from src.exceptions import EmailError

logger = logging.getLogger(__name__)

VERIFICATION_TEMPLATE = """Hello {username},

Please verify your email address by opening the link below:
{url}

Thank you,
ProductScan Team"""

RESET_TEMPLATE = """Hello {username},

We received a request to reset your password. Open the link below to choose a new one:
{url}

If you did not request this, you can ignore this email.

Thank you,
ProductScan Team"""


class EmailService:
    """Send transactional emails over SMTP.

    When no SMTP host is configured the message is logged instead, which is
    how development and test environments preview outgoing mail.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host)

    def send(self, to: str, subject: str, body: str) -> None:
        """Send a plain-text email.

        Raises:
            EmailError: if the SMTP transport fails
        """
        message = EmailMessage()
        message["From"] = self.settings.email_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        if not self.is_configured:
            logger.info(f"Email preview (SMTP not configured) to {to}: {subject}\n{body}")
            return

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
                if self.settings.smtp_use_tls:
                    smtp.starttls()
                if self.settings.smtp_username and self.settings.smtp_password:
                    smtp.login(self.settings.smtp_username, self.settings.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            raise EmailError(f"Failed to send email: {e}") from e

        logger.info(f"Sent '{subject}' email to {to}")

    def send_verification_email(self, email: str, token: str, username: str) -> None:
        url = f"{self.settings.base_url}/api/verify-email?token={token}"
        self.send(
            email,
            "Verify your email address",
            VERIFICATION_TEMPLATE.format(username=username, url=url),
        )

    def send_password_reset_email(self, email: str, token: str, username: str) -> None:
        url = f"{self.settings.base_url}/reset-password?token={token}"
        self.send(
            email,
            "Reset your password",
            RESET_TEMPLATE.format(username=username, url=url),
        )


def get_email_service() -> EmailService:
    """Get an email service instance."""
    return EmailService()
