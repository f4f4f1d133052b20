"""Typed failures raised by the authentication services.

Each error carries a machine-readable code, a caller-safe message and the HTTP
status the route layer should answer with. Messages never include store or
transport details.
"""


class AuthError(Exception):
    """Base class for authentication flow failures."""

    code = "AUTH_ERROR"
    status_code = 400
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# Validation errors: caller-fixable, never retried


class MissingEmailError(AuthError):
    code = "MISSING_EMAIL"
    default_message = "Email is required"


class InvalidEmailFormatError(AuthError):
    code = "INVALID_EMAIL_FORMAT"
    default_message = "Invalid email address"


class InvalidCodeFormatError(AuthError):
    code = "INVALID_CODE_FORMAT"
    default_message = "Verification code must be 6 letters or digits"


# Flow errors


class AlreadyRegisteredError(AuthError):
    """The email is already verified; the caller should log in instead."""

    code = "ALREADY_REGISTERED"
    default_message = "Email already registered"


class UserNotFoundError(AuthError):
    code = "USER_NOT_FOUND"
    status_code = 404
    default_message = "User not found"


class NotVerifiedError(AuthError):
    """The email exists but never completed signup.

    ``action`` tells the client to go back through signup, which reuses the
    pending user and sends a fresh code.
    """

    code = "NOT_VERIFIED"
    default_message = "Email not verified. Please sign up again to receive a new code"
    action = "signup"


class InvalidOrExpiredCodeError(AuthError):
    """Wrong and expired codes are deliberately reported the same way."""

    code = "INVALID_OR_EXPIRED_CODE"
    default_message = "Invalid or expired verification code"


class DeliveryFailureError(AuthError):
    """The code could not be emailed. Retrying the request is safe."""

    code = "DELIVERY_FAILURE"
    status_code = 500
    default_message = "Failed to send verification code"


class EmailDeliveryError(Exception):
    """Raised by the email channel when the relay rejects or cannot take a message."""
