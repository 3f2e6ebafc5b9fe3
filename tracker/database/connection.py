"""
Database Connection Module
Configures async SQLAlchemy engine and session factory.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tracker.config import settings
from tracker.database.base import Base

logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

async_engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides an async database session.

    Usage:
        @router.post("/login")
        async def login(session: Annotated[AsyncSession, Depends(get_async_session)]):
            ...

    Yields:
        AsyncSession: An async SQLAlchemy session.

    Note:
        Transactions are committed on success and rolled back on error.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Create all tables.

    Note:
        In production, use Alembic migrations instead.
        This is useful for testing and local development.
    """
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """
    Close database connections.
    Call this during application shutdown.
    """
    await async_engine.dispose()
