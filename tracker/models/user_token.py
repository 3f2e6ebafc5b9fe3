"""
User Token Model
Stores purpose-scoped, single-use tokens (password reset and the like).
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tracker.database.base import Base, UTCDateTime, UUIDMixin, utc_now


class UserToken(Base, UUIDMixin):
    """
    Single-use token bound to an account and a purpose.

    Only the SHA256 hash of the token is stored. A token is valid while it is
    unused, unexpired and presented for the purpose it was issued for.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Account the token was issued to
        purpose: What the token may be used for, e.g. "ResetPassword"
        token_hash: SHA256 hash of the token
        is_used: Whether this token has been consumed or invalidated
        expires_at: When the token expires
        used_at: When the token was consumed (if used)
        created_at: When the token was issued
    """

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    purpose: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Purpose the token was issued for",
    )

    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
        comment="SHA256 hash of the token",
    )

    is_used: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    used_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utc_now,
    )

    __table_args__ = (
        Index("ix_user_tokens_user_purpose_used", "user_id", "purpose", "is_used"),
    )

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.is_used and self.expires_at > (now or utc_now())

    def __repr__(self) -> str:
        return (
            f"<UserToken("
            f"id={self.id}, "
            f"purpose={self.purpose!r}, "
            f"is_used={self.is_used}, "
            f"expires_at={self.expires_at.isoformat() if self.expires_at else 'N/A'})>"
        )
