"""Pydantic schemas for API requests and responses."""

from src.schemas.auth import (
    CodeSentResponse,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserResponse,
    VerifyRequest,
    VerifyResponse,
)

__all__ = [
    "SignupRequest",
    "LoginRequest",
    "VerifyRequest",
    "CodeSentResponse",
    "VerifyResponse",
    "UserResponse",
    "MessageResponse",
]
