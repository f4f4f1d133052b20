"""Email channel for delivering one-time codes."""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from src.config import Settings
from src.models.enums import OtpPurpose
from src.services.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

SUBJECTS = {
    OtpPurpose.ENROLLMENT: "Complete your registration",
    OtpPurpose.REAUTHENTICATION: "Login verification code",
}

HTML_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">{subject}</h2>
  <p style="font-size: 16px; color: #666;">Your verification code is:</p>
  <div style="background: #f5f5f5; padding: 20px; border-radius: 5px; text-align: center; margin: 20px 0;">
    <span style="font-size: 32px; font-weight: bold; letter-spacing: 5px; color: #333;">{code}</span>
  </div>
  <p style="font-size: 14px; color: #999;">This code will expire in {minutes} minutes.</p>
  <p style="font-size: 12px; color: #999; margin-top: 20px;">
    If you didn't request this code, you can safely ignore this email.
  </p>
</div>
"""


class EmailService:
    """Sends verification codes through the configured SMTP relay.

    Without relay configuration (only allowed outside production) messages are
    not sent; the code is logged instead so it can be used for manual testing.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        if settings.smtp_configured:
            logger.info(f"Using SMTP relay {settings.smtp_host}:{settings.smtp_port}")
        else:
            logger.info("SMTP not configured, verification codes will be logged")

    def build_message(self, to_email: str, code: str, purpose: OtpPurpose) -> EmailMessage:
        """Build the plain-text and HTML verification email."""
        subject = SUBJECTS[purpose]
        minutes = self.settings.otp_expire_minutes

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.settings.email_sender_name, self.settings.mail_from))
        message["To"] = to_email
        message.set_content(
            f"Your verification code is: {code}\nThis code will expire in {minutes} minutes."
        )
        message.add_alternative(
            HTML_TEMPLATE.format(subject=subject, code=code, minutes=minutes), subtype="html"
        )
        return message

    def send_otp(self, to_email: str, code: str, purpose: OtpPurpose) -> None:
        """Deliver a code, raising EmailDeliveryError if the relay fails."""
        logger.info(f"Sending {purpose.value} verification code to {to_email}")
        message = self.build_message(to_email, code, purpose)

        if not self.settings.smtp_configured:
            logger.warning(
                f"SMTP not configured; {purpose.value} code for {to_email} is {code} (not sent)"
            )
            return

        try:
            self._send(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise EmailDeliveryError(str(e)) from e

        logger.info(f"Verification email sent to {to_email}")

    def _send(self, message: EmailMessage) -> None:
        settings = self.settings
        password = settings.smtp_password.get_secret_value() if settings.smtp_password else ""

        # Port 465 is implicit TLS; everything else upgrades with STARTTLS
        if settings.smtp_port == 465:
            with smtplib.SMTP_SSL(
                settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds
            ) as smtp:
                smtp.login(settings.smtp_user, password)
                smtp.send_message(message)
        else:
            with smtplib.SMTP(
                settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds
            ) as smtp:
                smtp.starttls()
                smtp.login(settings.smtp_user, password)
                smtp.send_message(message)
