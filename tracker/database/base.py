"""
Base Model Module
Defines the declarative base, column types and common mixins for all models.
"""

import re
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    declared_attr,
    mapped_column,
)
from sqlalchemy.types import TypeDecorator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column.

    Values are stored in UTC and always come back timezone-aware, including
    on backends (SQLite) that drop the offset on the way in.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Features:
        - Automatic table name generation from class name
        - Common __repr__ method
        - Type annotations support
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """
        Generate table name from class name.
        Converts CamelCase to snake_case and pluralizes.

        Examples:
            User -> users
            UserToken -> user_tokens
            LoginAttempt -> login_attempts
        """
        name = re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower()

        if name.endswith("ics") or name.endswith("sis"):
            return name
        elif name.endswith("s") or name.endswith("x") or name.endswith("ch") or name.endswith("sh"):
            return name + "es"
        elif name.endswith("y") and name[-2] not in "aeiou":
            return name[:-1] + "ies"
        else:
            return name + "s"

    def __repr__(self) -> str:
        """Generate a readable string representation."""
        class_name = self.__class__.__name__
        attrs = []

        if hasattr(self, "id"):
            attrs.append(f"id={self.id}")

        for attr in ["email", "name", "purpose"]:
            if hasattr(self, attr):
                value = getattr(self, attr)
                if value is not None:
                    attrs.append(f"{attr}={value!r}")

        return f"<{class_name}({', '.join(attrs)})>"


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamps.

    Usage:
        class User(Base, UUIDMixin, TimestampMixin):
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )


class UUIDMixin:
    """
    Mixin that adds a UUID primary key.

    Usage:
        class User(Base, UUIDMixin, TimestampMixin):
            ...
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
