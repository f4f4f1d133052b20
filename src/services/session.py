"""Server-side session binding for authenticated users."""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session

from src.config import Settings
from src.models.auth_session import AuthSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionHandle:
    """Opaque token handed to the client, plus when it stops being valid."""

    token: str
    expires_at: datetime


def hash_token(token: str) -> str:
    """Hash a session token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()


class SessionService:
    """Creates, resolves and destroys sessions.

    Sessions have a fixed absolute lifetime and are never extended. ``establish``
    only adds the row; committing is left to the caller so that a session is
    created in the same transaction as the verification that earned it.
    """

    def __init__(self, db: Session, settings: Settings) -> None:
        self.db = db
        self.ttl = timedelta(hours=settings.session_ttl_hours)

    def establish(self, user_id: int) -> SessionHandle:
        """Create a new session for a user."""
        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(UTC) + self.ttl
        self.db.add(AuthSession(token_hash=hash_token(token), user_id=user_id, expires_at=expires_at))
        self.db.flush()
        logger.info(f"Established session for user {user_id}")
        return SessionHandle(token=token, expires_at=expires_at)

    def resolve(self, token: str | None) -> int | None:
        """Return the user id of a live session, or None."""
        if not token:
            return None
        row = (
            self.db.query(AuthSession.user_id)
            .filter(
                AuthSession.token_hash == hash_token(token),
                AuthSession.expires_at > datetime.now(UTC),
            )
            .first()
        )
        return row.user_id if row else None

    def destroy(self, token: str | None) -> None:
        """Invalidate a session immediately. Unknown tokens are ignored."""
        if not token:
            return
        deleted = (
            self.db.query(AuthSession)
            .filter(AuthSession.token_hash == hash_token(token))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.info("Session destroyed")
