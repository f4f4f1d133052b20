"""Exception handlers that turn service failures into JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.config import get_settings
from src.services.errors import (
    AuthError,
    InvalidCodeFormatError,
    InvalidEmailFormatError,
    MissingEmailError,
)

logger = logging.getLogger(__name__)


def auth_error_handler(_request: Request, exc: AuthError) -> JSONResponse:
    """Return the caller-safe message and code of an authentication failure."""
    content = {"detail": exc.message, "code": exc.code}
    action = getattr(exc, "action", None)
    if action:
        content["action"] = action
    if exc.__cause__ is not None:
        logger.warning(f"{exc.code}: {exc.__cause__}")
    return JSONResponse(status_code=exc.status_code, content=content)


def _auth_error_for(errors) -> AuthError | None:
    """Pick the authentication failure matching a body validation error.

    Code problems win over email problems, in the order verification checks them.
    """
    locations = [tuple(error["loc"]) for error in errors]
    if any(loc[:2] == ("body", "code") for loc in locations):
        return InvalidCodeFormatError()
    if any(loc[:2] == ("body", "email") for loc in locations):
        return InvalidEmailFormatError()
    if any(tuple(error["loc"]) == ("body",) and error["type"] == "missing" for error in errors):
        return MissingEmailError()
    return None


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report a malformed email or code the same way the services do.

    Other body problems, such as unknown fields, keep FastAPI's 422.
    """
    auth_error = _auth_error_for(exc.errors())
    if auth_error is None:
        return await request_validation_exception_handler(request, exc)
    return auth_error_handler(request, auth_error)


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log a store failure and answer with a generic 500.

    The raw error is only attached when EXPOSE_ERROR_DETAIL is on, which the
    settings refuse in production.
    """
    logger.exception(f"Database error on {request.method} {request.url.path}", exc_info=exc)

    content = {"detail": "Internal server error"}
    if get_settings().expose_error_detail:
        content["error"] = f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the handlers to the application.

    Other unexpected exceptions are left to Starlette's server error
    middleware, which logs them once and answers with a plain 500.
    """
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, internal_error_handler)
