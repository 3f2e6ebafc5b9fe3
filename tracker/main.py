"""
Incident Tracker
FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tracker.auth.authorization import KNOWN_ROLES
from tracker.auth.credential_store import CredentialStore
from tracker.auth.dependencies import get_token_issuer
from tracker.auth.rate_limit import limiter
from tracker.auth.router import router as auth_router
from tracker.config import settings
from tracker.core.errors import global_exception_handler
from tracker.database import async_session_factory, close_db, init_db

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger(__name__)


async def seed_roles() -> list[str]:
    """Create the known roles that are missing from the database."""
    async with async_session_factory() as session:
        return await CredentialStore(session).ensure_roles(KNOWN_ROLES)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.
    Manages startup and shutdown of application resources.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    # Fails fast on an unusable signing key
    get_token_issuer()

    if settings.auto_create_tables:
        await init_db()

    if settings.seed_roles_on_startup:
        created = await seed_roles()
        if created:
            logger.info(f"Seeded roles: {', '.join(created)}")

    yield

    logger.info("Closing database connections...")
    await close_db()
    logger.info(f"{settings.app_name} shutdown complete")


def create_application() -> FastAPI:
    """
    Application factory.
    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Multi-tenant incident tracking backend: authentication and session API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routers(app)

    return app


def register_routers(app: FastAPI) -> None:
    """Register all API routers."""

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment
        }

    app.include_router(auth_router)


# Create the application instance
app = create_application()


if __name__ == "__main__":
    uvicorn.run(
        "tracker.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
