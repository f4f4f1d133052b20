"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api import auth
from src.api.errors import register_exception_handlers
from src.config import get_settings

logger = logging.getLogger(__name__)

# Invalid production configuration (e.g. no SMTP relay) fails here, at startup
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info(
        f"Starting in {settings.environment} mode, "
        f"code delivery {settings.otp_delivery_mode}, "
        f"SMTP {'configured' if settings.smtp_configured else 'not configured (codes are logged)'}"
    )
    yield


app = FastAPI(
    title="Story API",
    description="Personal journal with passwordless email sign-in",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_exception_handlers(app)

# Register routers
app.include_router(auth.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
