"""
Role Model
Named roles bound to user accounts.
"""

from sqlalchemy import Column, ForeignKey, String, Table, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from tracker.database.base import Base, UTCDateTime, UUIDMixin, utc_now

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Uuid(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", UTCDateTime(), nullable=False, default=utc_now),
)


class Role(Base, UUIDMixin):
    """
    Role that can be granted to an account.

    Attributes:
        id: Unique identifier (UUID)
        name: Role name (unique), e.g. "Admin" or "Client"
    """

    name: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Role(name={self.name!r})>"
