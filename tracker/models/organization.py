"""
Organization Model
Represents a tenant in the multi-tenant system.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Column, ForeignKey, String, Table, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tracker.database.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, utc_now

if TYPE_CHECKING:
    from tracker.models.user import User

user_organizations = Table(
    "user_organizations",
    Base.metadata,
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "organization_id",
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("joined_at", UTCDateTime(), nullable=False, default=utc_now),
)


class Organization(Base, UUIDMixin, TimestampMixin):
    """
    Organization model for multi-tenancy.

    Users may belong to many organizations and an organization has many
    members. Incident data is scoped to an organization; access to it is
    gated on membership (or the Admin role).

    Attributes:
        id: Unique identifier (UUID)
        name: Organization name
        is_active: Whether the organization is active
        users: Member accounts (read-only; load explicitly with selectinload)
    """

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    users: Mapped[list["User"]] = relationship(
        "User",
        secondary=user_organizations,
        viewonly=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"
