"""
Authentication Errors
Error codes reported by the session manager and typed exceptions raised
by the token issuer and configuration.
"""

from enum import Enum
from typing import Optional, Sequence

from fastapi import HTTPException, status


class AuthErrorCode(str, Enum):
    """Machine-readable failure reasons carried in auth results."""

    DUPLICATE_EMAIL = "DuplicateEmail"
    ACCOUNT_DEACTIVATED = "AccountDeactivated"
    ACCOUNT_LOCKED = "AccountLocked"
    INVALID_CREDENTIALS = "InvalidCredentials"
    USER_NOT_FOUND = "UserNotFound"
    INVALID_TOKEN = "InvalidToken"
    INVALID_REFRESH_TOKEN = "InvalidRefreshToken"
    VALIDATION_FAILED = "ValidationFailed"
    ROLE_ASSIGNMENT_FAILED = "RoleAssignmentFailed"
    PERSISTENCE_FAILED = "PersistenceFailed"


AUTH_ERROR_STATUS = {
    AuthErrorCode.DUPLICATE_EMAIL: status.HTTP_409_CONFLICT,
    AuthErrorCode.ACCOUNT_DEACTIVATED: status.HTTP_403_FORBIDDEN,
    AuthErrorCode.ACCOUNT_LOCKED: status.HTTP_423_LOCKED,
    AuthErrorCode.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AuthErrorCode.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.INVALID_REFRESH_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorCode.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.ROLE_ASSIGNMENT_FAILED: status.HTTP_400_BAD_REQUEST,
    AuthErrorCode.PERSISTENCE_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidTokenError(AuthError):
    """
    Access token failed validation.

    Raised for a bad signature, a malformed token, an unexpected signing
    algorithm, or (for full validation only) an expired token.
    """


class ConfigurationError(AuthError):
    """Signing configuration is unusable. Fatal at startup."""


def create_auth_error_response(
    error_code: AuthErrorCode,
    errors: Sequence[str],
    http_status: Optional[int] = None,
) -> HTTPException:
    """
    HTTPException for a failed session operation.

    The body carries the error code and every error message in order.
    """
    if http_status is None:
        http_status = AUTH_ERROR_STATUS.get(error_code, status.HTTP_400_BAD_REQUEST)

    return HTTPException(
        status_code=http_status,
        detail={
            "error_code": error_code.value,
            "message": " ".join(errors),
            "errors": list(errors),
        },
    )
