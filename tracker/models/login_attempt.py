"""
Login Attempt Model
Audit trail of login attempts made from a known client address.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tracker.database.base import Base, UTCDateTime, UUIDMixin, utc_now


class LoginAttempt(Base, UUIDMixin):
    """
    One row per login attempt.

    Attributes:
        id: Unique identifier (UUID)
        email: Normalized email used in the attempt
        user_id: Matching account, if any
        ip_address: Client address (IPv6 length)
        success: Whether the attempt signed in
        attempted_at: When the attempt was made
    """

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
        comment="Account ID if the account exists",
    )

    ip_address: Mapped[str] = mapped_column(
        String(45),
        nullable=False,
        index=True,
    )

    success: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    attempted_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utc_now,
        index=True,
    )

    __table_args__ = (
        Index("ix_login_attempt_email_time", "email", "attempted_at"),
        Index("ix_login_attempt_ip_time", "ip_address", "attempted_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<LoginAttempt("
            f"email={self.email}, "
            f"success={self.success}, "
            f"attempted_at={self.attempted_at.isoformat() if self.attempted_at else 'N/A'})>"
        )
