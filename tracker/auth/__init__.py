"""
Authentication Package
Handles account authentication, session tokens, and authorization.
"""

from tracker.auth.credential_store import CredentialStore, IdentityResult
from tracker.auth.dependencies import (
    CurrentClaims,
    CurrentUser,
    get_current_claims,
    get_current_user,
    require_organization_access,
    require_roles,
)
from tracker.auth.exceptions import AuthError, AuthErrorCode, ConfigurationError, InvalidTokenError
from tracker.auth.service import AuthResult, AuthService
from tracker.auth.tokens import TokenClaims, TokenIssuer

__all__ = [
    # Dependencies
    "CurrentClaims",
    "CurrentUser",
    "get_current_claims",
    "get_current_user",
    "require_organization_access",
    "require_roles",
    # Errors
    "AuthError",
    "AuthErrorCode",
    "ConfigurationError",
    "InvalidTokenError",
    # Service
    "AuthResult",
    "AuthService",
    "CredentialStore",
    "IdentityResult",
    # Tokens
    "TokenClaims",
    "TokenIssuer",
]
