"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from src.api.dependencies import (
    get_current_user,
    get_otp_service,
    get_session_service,
    get_session_token,
)
from src.config import Settings, get_settings
from src.models.enums import OtpPurpose
from src.models.user import User
from src.schemas.auth import (
    CodeSentResponse,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserResponse,
    VerifyRequest,
    VerifyResponse,
)
from src.services.otp import OtpService
from src.services.session import SessionService

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/signup", response_model=CodeSentResponse)
def signup(
    body: SignupRequest,
    otp_service: Annotated[OtpService, Depends(get_otp_service)],
):
    """Request a signup code by email."""
    otp_service.request_enrollment(body.email)
    return CodeSentResponse(message="Verification code sent to your email")


@router.post("/login", response_model=CodeSentResponse)
def login(
    body: LoginRequest,
    otp_service: Annotated[OtpService, Depends(get_otp_service)],
):
    """Request a login code for a verified email."""
    otp_service.request_reauthentication(body.email)
    return CodeSentResponse(message="Login code sent to your email")


@router.post("/verify", response_model=VerifyResponse)
def verify(
    body: VerifyRequest,
    response: Response,
    otp_service: Annotated[OtpService, Depends(get_otp_service)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Verify an emailed code and start a session."""
    result = otp_service.verify_code(body.email, body.code)

    response.set_cookie(
        key=settings.session_cookie_name,
        value=result.session.token,
        max_age=settings.session_ttl_hours * 3600,
        expires=result.session.expires_at,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )

    if result.purpose == OtpPurpose.ENROLLMENT:
        message = "Signup completed successfully"
    else:
        message = "Login successful"
    return VerifyResponse(message=message, user=UserResponse.model_validate(result.user))


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    token: Annotated[str | None, Depends(get_session_token)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """End the current session. Safe to call without one."""
    session_service.destroy(token)
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
@router.get("/user", response_model=UserResponse, include_in_schema=False)
def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user information."""
    return current_user
