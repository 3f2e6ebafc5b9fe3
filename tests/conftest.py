"""Shared fixtures: in-memory database, services and an HTTP client."""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-signing-key-with-at-least-32-characters"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_ROLES_ON_STARTUP"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tracker.auth.authorization import KNOWN_ROLES
from tracker.auth.credential_store import CredentialStore
from tracker.auth.service import AuthService
from tracker.auth.tokens import TokenIssuer
from tracker.config import settings
from tracker.database import Base, get_async_session
from tracker.main import app

PASSWORD = "Passw0rd!"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory):
    """Session with the known roles already seeded."""
    async with session_factory() as session:
        await CredentialStore(session, settings).ensure_roles(KNOWN_ROLES)
        yield session


@pytest.fixture
def token_issuer():
    return TokenIssuer.from_settings(settings)


@pytest.fixture
def store(session):
    return CredentialStore(session, settings)


@pytest.fixture
def auth_service(session, token_issuer):
    return AuthService(session, token_issuer, settings)


@pytest.fixture
async def registered(auth_service):
    """alice@example.com registered with the default role."""
    result = await auth_service.register("alice@example.com", PASSWORD, "Alice", "Anders")
    assert result.success, result.errors
    return result


@pytest.fixture
async def client(session, session_factory):
    """HTTP client against the app, backed by the test database."""

    async def override_session():
        async with session_factory() as request_session:
            try:
                yield request_session
                await request_session.commit()
            except Exception:
                await request_session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
