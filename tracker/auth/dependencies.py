"""
Authentication Dependencies
FastAPI dependencies for route protection.
"""

from functools import lru_cache
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.auth.authorization import has_any_role, is_authorized_for_organization
from tracker.auth.credential_store import CredentialStore
from tracker.auth.exceptions import InvalidTokenError
from tracker.auth.service import AuthService
from tracker.auth.tokens import TokenClaims, TokenIssuer
from tracker.config import settings
from tracker.core.errors import ErrorCode, create_error_response
from tracker.database import get_async_session
from tracker.models import User

# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    """Token issuer built once from settings."""
    return TokenIssuer.from_settings(settings)


async def get_auth_service(
    session: Annotated[AsyncSession, Depends(get_async_session)],
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> AuthService:
    return AuthService(session, token_issuer, settings)


def _credentials_exception():
    return create_error_response(
        ErrorCode.NOT_AUTHENTICATED,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> TokenClaims:
    """
    Dependency that validates the bearer access token and returns its claims.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if credentials is None:
        raise _credentials_exception()

    try:
        payload = token_issuer.validate_access_token(credentials.credentials)
        return TokenClaims.from_payload(payload)
    except InvalidTokenError:
        raise _credentials_exception()


async def get_optional_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> Optional[TokenClaims]:
    """Claims of a valid bearer token, or None for anonymous callers."""
    if credentials is None:
        return None
    try:
        payload = token_issuer.validate_access_token(credentials.credentials)
        return TokenClaims.from_payload(payload)
    except InvalidTokenError:
        return None


CurrentClaims = Annotated[TokenClaims, Depends(get_current_claims)]
OptionalClaims = Annotated[Optional[TokenClaims], Depends(get_optional_claims)]


async def get_current_user(
    claims: CurrentClaims,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> User:
    """
    Dependency that loads the account behind the access token.

    Usage:
        @router.get("/protected")
        async def protected_route(user: CurrentUser):
            return {"user_id": user.id}

    Raises:
        HTTPException: 401 if the account no longer exists, 403 if deactivated
    """
    user = await CredentialStore(session).find_by_id(claims.user_id)
    if user is None:
        raise _credentials_exception()

    if not user.is_active:
        raise create_error_response(ErrorCode.FORBIDDEN, "User account is deactivated.")

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: str):
    """
    Dependency factory restricting a route to sessions acting as one of ``roles``.

    Usage:
        @router.get("/admin", dependencies=[Depends(require_roles("Admin"))])
    """

    async def checker(claims: CurrentClaims) -> TokenClaims:
        if not has_any_role(claims, *roles):
            raise create_error_response(ErrorCode.FORBIDDEN)
        return claims

    return checker


async def require_organization_access(
    organization_id: UUID,
    claims: CurrentClaims,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> TokenClaims:
    """
    Dependency for organization-scoped routes (``{organization_id}`` path parameter).

    Raises:
        HTTPException: 403 unless the session is Admin or a member
    """
    if not await is_authorized_for_organization(session, claims, organization_id):
        raise create_error_response(ErrorCode.FORBIDDEN)
    return claims
