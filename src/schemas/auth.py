"""Authentication schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class SignupRequest(BaseModel):
    """Request a signup (enrollment) code."""

    model_config = ConfigDict(extra="forbid", strict=True)

    email: str | None = None


class LoginRequest(BaseModel):
    """Request a login code for a verified email."""

    model_config = ConfigDict(extra="forbid", strict=True)

    email: str | None = None


class VerifyRequest(BaseModel):
    """Submit an emailed code."""

    model_config = ConfigDict(extra="forbid", strict=True)

    email: str | None = None
    code: str | None = None


class CodeSentResponse(BaseModel):
    """Acknowledgement that a code was issued; the client should show the code form."""

    message: str
    action: Literal["verify"] = "verify"


class UserResponse(BaseModel):
    """Public identity of a user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str


class VerifyResponse(BaseModel):
    """Successful verification; the session cookie is set on the response."""

    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    """Plain message response."""

    message: str
