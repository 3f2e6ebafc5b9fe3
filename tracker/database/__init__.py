"""
Database Package
Handles database connection, session management, and base models.
"""

from tracker.database.connection import (
    async_engine,
    async_session_factory,
    get_async_session,
    init_db,
    close_db,
)
from tracker.database.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, utc_now

__all__ = [
    # Connection
    "async_engine",
    "async_session_factory",
    "get_async_session",
    "init_db",
    "close_db",
    # Base classes
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDMixin",
    "utc_now",
]
