"""
User Model
Represents an account that can authenticate against the tracker.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.database.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, utc_now

if TYPE_CHECKING:
    from tracker.models.organization import Organization
    from tracker.models.role import Role


class User(Base, UUIDMixin, TimestampMixin):
    """
    User account for authentication and identity.

    Attributes:
        id: Unique identifier (UUID)
        email: Normalized (lowercase) email address, unique, used for login
        first_name: Given name
        last_name: Family name
        password_hash: Bcrypt hashed password
        is_active: Whether the account may sign in
        access_failed_count: Consecutive failed password checks
        lockout_end: Sign-in is refused until this instant (None = not locked)
        refresh_token_hash: SHA256 hash of the current refresh token
        refresh_token_expiry_time: When the current refresh token stops working
        last_login_at: Last successful login
        version: Optimistic concurrency counter
        roles: Bound roles (many-to-many)
        organizations: Organizations the account is a member of (many-to-many)

    Indexes:
        - email (unique)
        - (email, is_active)
    """

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
    )

    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Account status
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Lockout
    access_failed_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    lockout_end: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    # Session
    refresh_token_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="SHA256 hash of the current refresh token",
    )

    refresh_token_expiry_time: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    # Relationships
    roles: Mapped[list["Role"]] = relationship(
        "Role",
        secondary="user_roles",
        lazy="selectin",
        order_by="Role.name",
    )

    organizations: Mapped[list["Organization"]] = relationship(
        "Organization",
        secondary="user_organizations",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_users_email_active", "email", "is_active"),
    )

    def is_locked_out(self, now: datetime | None = None) -> bool:
        """Whether a lockout window is currently in force."""
        if self.lockout_end is None:
            return False
        return self.lockout_end > (now or utc_now())

    @property
    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, is_active={self.is_active})>"
