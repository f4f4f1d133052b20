"""User model."""

from sqlalchemy import Boolean, Column, Integer, String, false
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """An email identity; created on first signup, verified by its first enrollment code."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    is_verified = Column(Boolean, default=False, server_default=false(), nullable=False)

    # Relationships
    one_time_codes = relationship(
        "OneTimeCode",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    sessions = relationship(
        "AuthSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
