"""Passwordless sign-in with emailed one-time codes.

Flow per email address::

    unregistered --signup--> pending --verify--> verified
                              |  ^
                              +--+ signup again (same user, fresh code)

Verified users log in with the independent login/verify cycle. Issuing a code
deletes any earlier unconsumed code of the same purpose for that user, so only
the newest code works. Consuming a code is a single compare-and-delete
statement, which makes each code usable at most once even under concurrent
verification attempts.
"""

import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from kombu.exceptions import OperationalError as BrokerError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.config import Settings
from src.models.enums import OtpPurpose
from src.models.one_time_code import OneTimeCode
from src.models.user import User
from src.services.email import EmailService
from src.services.errors import (
    AlreadyRegisteredError,
    DeliveryFailureError,
    EmailDeliveryError,
    InvalidCodeFormatError,
    InvalidEmailFormatError,
    InvalidOrExpiredCodeError,
    MissingEmailError,
    NotVerifiedError,
    UserNotFoundError,
)
from src.services.session import SessionHandle, SessionService
from src.tasks.email import send_otp_email

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_EMAIL_LENGTH = 255


def generate_code(length: int = 6) -> str:
    """Generate an upper-case alphanumeric code from a CSPRNG."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def validate_email(email: str | None) -> str:
    """Check an email is present and has an @. Surrounding whitespace is dropped."""
    email = (email or "").strip()
    if not email:
        raise MissingEmailError()
    local, at, domain = email.partition("@")
    if not at or not local or not domain or len(email) > MAX_EMAIL_LENGTH:
        raise InvalidEmailFormatError()
    return email


def normalize_code(code: str | None, length: int = 6) -> str:
    """Upper-case a submitted code and check its shape."""
    code = (code or "").strip().upper()
    if not re.fullmatch(rf"[A-Z0-9]{{{length}}}", code):
        raise InvalidCodeFormatError(f"Verification code must be {length} letters or digits")
    return code


@dataclass(frozen=True)
class VerificationResult:
    """A verified identity and the session bound to it."""

    user: User
    session: SessionHandle
    purpose: OtpPurpose


class OtpService:
    """Issues, delivers and verifies one-time codes."""

    def __init__(
        self,
        db: Session,
        settings: Settings,
        email_service: EmailService,
        session_service: SessionService,
    ) -> None:
        self.db = db
        self.settings = settings
        self.email_service = email_service
        self.session_service = session_service
        self.code_ttl = timedelta(minutes=settings.otp_expire_minutes)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def request_enrollment(self, email: str | None) -> None:
        """Send a signup code, creating the user on first attempt.

        A user created by this call is removed again if the code cannot be
        delivered. Users left over from earlier attempts are kept.
        """
        email = validate_email(email)
        user, created = self._get_or_create_pending_user(email)
        code = self._issue_code(user, OtpPurpose.ENROLLMENT)

        try:
            self._deliver(email, code, OtpPurpose.ENROLLMENT)
        except EmailDeliveryError as e:
            if created:
                self._discard_user(user, code)
            raise DeliveryFailureError() from e

    def request_reauthentication(self, email: str | None) -> None:
        """Send a login code to a verified user."""
        email = validate_email(email)
        user = self._get_user(email)
        if user is None:
            raise UserNotFoundError()
        if not user.is_verified:
            raise NotVerifiedError()

        code = self._issue_code(user, OtpPurpose.REAUTHENTICATION)
        try:
            self._deliver(email, code, OtpPurpose.REAUTHENTICATION)
        except EmailDeliveryError as e:
            raise DeliveryFailureError() from e

    def verify_code(self, email: str | None, code: str | None) -> VerificationResult:
        """Consume a code and open a session for its owner."""
        code = normalize_code(code, self.settings.otp_length)
        email = validate_email(email)

        user = self._get_user(email)
        if user is None:
            raise UserNotFoundError()

        now = datetime.now(UTC)
        otp = self._find_code(user.id, code, now)
        if otp is None:
            raise InvalidOrExpiredCodeError()

        purpose = otp.purpose
        if not self._consume(otp, now):
            # Used by a concurrent request between lookup and delete
            self.db.rollback()
            raise InvalidOrExpiredCodeError()

        if purpose.marks_verified and not user.is_verified:
            user.is_verified = True
            logger.info(f"User {user.id} verified their email")

        handle = self.session_service.establish(user.id)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} signed in with a {purpose.value} code")
        return VerificationResult(user=user, session=handle, purpose=purpose)

    # ------------------------------------------------------------------
    # Credential store helpers
    # ------------------------------------------------------------------

    def _get_user(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def _get_or_create_pending_user(self, email: str) -> tuple[User, bool]:
        """Return the unverified user for an email and whether it was just created."""
        user = self._get_user(email)
        created = False
        if user is None:
            user, created = self._create_user(email)
        if user.is_verified:
            raise AlreadyRegisteredError()
        return user, created

    def _create_user(self, email: str) -> tuple[User, bool]:
        user = User(email=email, is_verified=False)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup; the unique email decides
            self.db.rollback()
            existing = self._get_user(email)
            if existing is None:
                raise
            logger.info(f"Concurrent signup for {email}, reusing user {existing.id}")
            return existing, False

        self.db.refresh(user)
        logger.info(f"Created pending user {user.id}")
        return user, True

    def _issue_code(self, user: User, purpose: OtpPurpose) -> str:
        """Replace the user's pending code for this purpose with a new one."""
        self.db.query(OneTimeCode).filter(
            OneTimeCode.user_id == user.id,
            OneTimeCode.purpose == purpose,
        ).delete(synchronize_session=False)

        code = generate_code(self.settings.otp_length)
        self.db.add(
            OneTimeCode(
                user_id=user.id,
                code=code,
                purpose=purpose,
                expires_at=datetime.now(UTC) + self.code_ttl,
            )
        )
        self.db.commit()
        logger.info(f"Issued {purpose.value} code for user {user.id}")
        return code

    def _find_code(self, user_id: int, code: str, now: datetime) -> OneTimeCode | None:
        return (
            self.db.query(OneTimeCode)
            .filter(
                OneTimeCode.user_id == user_id,
                OneTimeCode.code == code,
                OneTimeCode.expires_at > now,
            )
            .first()
        )

    def _consume(self, otp: OneTimeCode, now: datetime) -> bool:
        """Delete a code if it is still there and unexpired. True if this call deleted it."""
        deleted = (
            self.db.query(OneTimeCode)
            .filter(
                OneTimeCode.id == otp.id,
                OneTimeCode.code == otp.code,
                OneTimeCode.expires_at > now,
            )
            .delete(synchronize_session=False)
        )
        return deleted == 1

    def _discard_user(self, user: User, code: str) -> None:
        """Undo a signup whose code was never delivered.

        Only the undelivered code is removed. The user stays if a concurrent
        signup has since issued it another code, or if it got verified.
        """
        user_id = user.id
        self.db.query(OneTimeCode).filter(
            OneTimeCode.user_id == user_id,
            OneTimeCode.code == code,
            OneTimeCode.purpose == OtpPurpose.ENROLLMENT,
        ).delete(synchronize_session=False)
        removed = (
            self.db.query(User)
            .filter(
                User.id == user_id,
                User.is_verified.is_(False),
                ~User.one_time_codes.any(),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if removed:
            logger.warning(f"Removed pending user {user_id} after failed code delivery")
        else:
            logger.info(f"Kept user {user_id} after failed code delivery, it is in use elsewhere")

    # ------------------------------------------------------------------
    # Notification channel
    # ------------------------------------------------------------------

    def _deliver(self, email: str, code: str, purpose: OtpPurpose) -> None:
        """Send the code now, or hand it to the Celery worker in queued mode."""
        if self.settings.otp_delivery_mode == "queued":
            try:
                send_otp_email.delay(email, code, purpose.value)
            except BrokerError as e:
                logger.error(f"Failed to queue verification email for {email}: {e}")
                raise EmailDeliveryError(str(e)) from e
            return

        self.email_service.send_otp(email, code, purpose)
