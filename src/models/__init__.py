"""SQLAlchemy models."""

from src.models.auth_session import AuthSession
from src.models.one_time_code import OneTimeCode
from src.models.user import User

__all__ = [
    "User",
    "OneTimeCode",
    "AuthSession",
]
