"""Celery tasks for verification email delivery."""

import logging

from src.celery_app import app as celery_app
from src.config import get_settings
from src.models.enums import OtpPurpose
from src.services.email import EmailService
from src.services.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def send_otp_email(self, to_email: str, code: str, purpose: str) -> dict:
    """Deliver a verification code outside the request that issued it.

    Used when OTP_DELIVERY_MODE is "queued". The code is already committed, so
    a failed send is retried; the user can always request a new code.

    Args:
        to_email: Recipient address
        code: The one-time code
        purpose: OtpPurpose value the code was issued for

    Returns:
        dict with delivery status
    """
    email_service = EmailService(get_settings())
    try:
        email_service.send_otp(to_email, code, OtpPurpose(purpose))
    except EmailDeliveryError as e:
        logger.error(f"Verification email to {to_email} failed: {e}")

        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=30 * (self.request.retries + 1)) from e

        return {"status": "failed", "error": str(e)}

    return {"status": "sent"}
