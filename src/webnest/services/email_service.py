"""
Outbound email over SMTP.

Messages are built with `email.message.EmailMessage` and delivered with **aiosmtplib** so
sending never blocks the event loop. With `EMAIL_ENABLED=false` messages are only logged,
which is how local development and tests run.
"""

from email.message import EmailMessage

import aiosmtplib

from webnest.config import settings
from webnest.errors import EmailDeliveryError
from webnest.managers.logging_manager import get_logger
from webnest.services import email_templates

logger = get_logger(prefix="[EmailService]")


class EmailService:
    """
    Thin SMTP client with helpers for each WebNest template.
    """

    def __init__(self, enabled: bool = None):
        self.enabled = settings.EMAIL_ENABLED if enabled is None else enabled

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = settings.email_sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable email client.")
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str) -> None:
        """
        Send one HTML email.

        Raises:
            EmailDeliveryError: If the SMTP exchange fails.
        """
        if not self.enabled:
            logger.info("Email disabled, skipping send to %s: %s", to, subject)
            return

        message = self.build_message(to, subject, html)
        try:
            await aiosmtplib.send(
                message,
                hostname=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_EMAIL or None,
                password=settings.SMTP_PASSWORD.get_secret_value() or None,
                start_tls=settings.SMTP_USE_TLS,
                timeout=settings.SMTP_TIMEOUT_SECONDS,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s (%s): %s", to, subject, e)
            raise EmailDeliveryError(f"Failed to send email to {to}") from e

        logger.info("Sent email to %s: %s", to, subject)

    async def send_verification_code(self, to: str, name: str, otp: str) -> None:
        await self.send(to, "WebNest - Verify your account", email_templates.verification_email(otp, name))

    async def send_password_reset(self, to: str, name: str, reset_link: str) -> None:
        await self.send(to, "WebNest - Password Reset", email_templates.password_reset_email(reset_link, name))

    async def send_subscription_confirmation(self, to: str, name: str, plan: str, price: str) -> None:
        await self.send(to, "WebNest - Subscription Confirmed", email_templates.subscription_email(name, plan, price))
