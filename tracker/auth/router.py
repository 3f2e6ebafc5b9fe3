"""
Authentication Router
API endpoints for the session lifecycle.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.auth.authorization import RoleName, can_assign_role, get_primary_organization_id, is_known_role
from tracker.auth.dependencies import (
    CurrentClaims,
    CurrentUser,
    OptionalClaims,
    get_auth_service,
    get_token_issuer,
)
from tracker.auth.exceptions import AuthErrorCode, InvalidTokenError, create_auth_error_response
from tracker.auth.rate_limit import limiter
from tracker.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    RevokeTokenRequest,
    UserProfileResponse,
)
from tracker.auth.service import AuthResult, AuthService
from tracker.auth.tokens import TokenIssuer
from tracker.core.errors import ErrorCode, create_error_response
from tracker.database import get_async_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def deliver_password_reset_token(email: str, token: str) -> None:
    """
    Hand a reset token to the delivery channel.

    Mail delivery lives outside this service; the issuance is logged
    without the token value.
    """
    logger.info(f"Password reset token issued for {email}")


async def _to_response(session: AsyncSession, result: AuthResult) -> AuthResponse:
    if not result.success:
        raise create_auth_error_response(result.error_code, result.errors)

    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user_id=result.user_id,
        email=result.email,
        first_name=result.first_name,
        last_name=result.last_name,
        role=result.role,
        organization_id=await get_primary_organization_id(session, result.user_id),
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new account",
    description="Create an account bound to one role and open a session for it.",
)
@limiter.limit("10/hour")
async def register(
    request: Request,
    register_data: RegisterRequest,
    caller: OptionalClaims,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AuthResponse:
    """
    Register a new account.

    Anonymous callers may register as Client or User; any other known role
    requires an Admin session. Rate limited to 10 requests per hour per IP.
    """
    if is_known_role(register_data.role) and not can_assign_role(register_data.role, caller):
        raise create_error_response(
            ErrorCode.FORBIDDEN,
            f"Role '{register_data.role}' can only be assigned by an administrator.",
        )

    result = await auth_service.register(
        email=register_data.email,
        password=register_data.password,
        first_name=register_data.first_name,
        last_name=register_data.last_name,
        role=register_data.role,
    )
    return await _to_response(session, result)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Authenticate with email and password and return a token pair.",
)
@limiter.limit("20/15minutes")
async def login(
    request: Request,
    login_data: LoginRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AuthResponse:
    """
    Authenticate and return tokens.

    Implements account lockout after repeated failed attempts.
    """
    result = await auth_service.login(
        email=login_data.email,
        password=login_data.password,
        ip_address=get_remote_address(request),
    )
    return await _to_response(session, result)


@router.post(
    "/refresh-token",
    response_model=AuthResponse,
    summary="Refresh session",
    description="Exchange an access token and its refresh token for a new pair (rotation).",
)
@limiter.limit("30/hour")
async def refresh_token(
    request: Request,
    refresh_data: RefreshTokenRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> AuthResponse:
    """
    Rotate the session tokens.

    The access token may be expired; the refresh token must be the current one.
    """
    result = await auth_service.refresh_token(
        refresh_data.access_token,
        refresh_data.refresh_token,
    )
    return await _to_response(session, result)


@router.post(
    "/revoke-token",
    response_model=MessageResponse,
    summary="Revoke session",
    description="Invalidate the refresh token of a session.",
)
async def revoke_token(
    revoke_data: RevokeTokenRequest,
    claims: CurrentClaims,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
    token_issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> MessageResponse:
    """
    Revoke the refresh token of the session that owns ``access_token``.

    Callers may revoke their own sessions; Admin may revoke any.
    """
    try:
        target = token_issuer.get_claims_from_expired_token(revoke_data.access_token)
    except InvalidTokenError:
        raise create_auth_error_response(
            AuthErrorCode.INVALID_TOKEN, ["Invalid token."], http_status=status.HTTP_400_BAD_REQUEST
        )

    if target.get("sub") != claims.email and claims.role != RoleName.ADMIN.value:
        raise create_error_response(ErrorCode.FORBIDDEN)

    if not await auth_service.revoke_token(revoke_data.access_token):
        raise create_auth_error_response(
            AuthErrorCode.INVALID_TOKEN, ["Invalid token."], http_status=status.HTTP_400_BAD_REQUEST
        )

    return MessageResponse(message="Token revoked successfully.")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request password reset",
    description="Issue a password reset token. The response never reveals whether the account exists.",
)
@limiter.limit("5/hour")
async def forgot_password(
    request: Request,
    forgot_data: ForgotPasswordRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    token = await auth_service.generate_password_reset_token(forgot_data.email)
    if token is not None:
        deliver_password_reset_token(forgot_data.email, token)

    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password",
    description="Set a new password with a reset token.",
)
@limiter.limit("10/hour")
async def reset_password(
    request: Request,
    reset_data: ResetPasswordRequest,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    reset = await auth_service.reset_password(
        reset_data.email,
        reset_data.token,
        reset_data.new_password,
    )
    if not reset:
        raise create_auth_error_response(
            AuthErrorCode.INVALID_TOKEN,
            ["Invalid token or email."],
            http_status=status.HTTP_400_BAD_REQUEST,
        )

    return MessageResponse(message="Password has been reset successfully.")


@router.post(
    "/change-password",
    summary="Change password",
    description="Change the password of the signed-in account (requires current password).",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def change_password(
    password_data: ChangePasswordRequest,
    current_user: CurrentUser,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> None:
    result = await auth_service.change_password(
        user_id=current_user.id,
        current_password=password_data.current_password,
        new_password=password_data.new_password,
    )
    if not result.succeeded:
        raise create_auth_error_response(AuthErrorCode.VALIDATION_FAILED, result.errors)


@router.get(
    "/me",
    response_model=UserProfileResponse,
    summary="Get current account",
    description="Get the signed-in account's profile.",
)
async def get_me(
    claims: CurrentClaims,
    current_user: CurrentUser,
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> UserProfileResponse:
    return UserProfileResponse(
        id=current_user.id,
        email=current_user.email,
        first_name=current_user.first_name,
        last_name=current_user.last_name,
        role=claims.role,
        roles=current_user.role_names,
        is_active=current_user.is_active,
        organization_id=await get_primary_organization_id(session, current_user.id),
        organization_ids=[organization.id for organization in current_user.organizations],
        last_login_at=current_user.last_login_at,
        created_at=current_user.created_at,
    )
