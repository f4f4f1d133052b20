"""Enums for model fields."""

from enum import Enum


class OtpPurpose(str, Enum):
    """What a one-time code was issued for."""

    ENROLLMENT = "enrollment"
    REAUTHENTICATION = "reauthentication"

    @property
    def marks_verified(self) -> bool:
        """Check if consuming a code of this purpose verifies the email address."""
        return self == OtpPurpose.ENROLLMENT
