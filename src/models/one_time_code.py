"""One-time code model."""

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.enums import OtpPurpose
from src.models.mixins import CreatedAtMixin


class OneTimeCode(Base, CreatedAtMixin):
    """A pending emailed code, owned by exactly one user and deleted once consumed."""

    __tablename__ = "one_time_codes"
    __table_args__ = (Index("ix_one_time_codes_user_purpose", "user_id", "purpose"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    code = Column(String(12), nullable=False)  # always upper-case
    purpose = Column(
        Enum(
            OtpPurpose,
            name="otppurpose",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # Relationships
    user = relationship("User", back_populates="one_time_codes")
