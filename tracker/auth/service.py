"""
Authentication Service
Session lifecycle: registration, login with lockout, refresh token rotation,
revocation and password reset.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tracker.auth.audit import AuditEvent, log_auth_event
from tracker.auth.credential_store import (
    DUPLICATE_EMAIL_MESSAGE,
    CredentialStore,
    IdentityResult,
)
from tracker.auth.exceptions import AuthErrorCode, InvalidTokenError
from tracker.auth.tokens import TokenIssuer
from tracker.auth.utils import hash_token, normalize_email, token_matches
from tracker.config import Settings, settings
from tracker.models import LoginAttempt, User

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "User"

USER_NOT_FOUND_MESSAGE = "User does not exist."
ACCOUNT_DEACTIVATED_MESSAGE = "This account has been deactivated."
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials."
INVALID_TOKEN_MESSAGE = "Invalid token."
INVALID_REFRESH_TOKEN_MESSAGE = "Invalid refresh token."


@dataclass
class AuthResult:
    """Uniform outcome of the session operations."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    user_id: UUID | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: str | None = None
    errors: list[str] = field(default_factory=list)
    error_code: AuthErrorCode | None = None

    @classmethod
    def failure(cls, error_code: AuthErrorCode, *errors: str) -> "AuthResult":
        return cls(success=False, errors=list(errors), error_code=error_code)


class AuthService:
    """Session manager for account authentication."""

    def __init__(
        self,
        session: AsyncSession,
        token_issuer: TokenIssuer,
        config: Settings = settings,
    ):
        self.session = session
        self.token_issuer = token_issuer
        self.config = config
        self.store = CredentialStore(session, config)

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str = "Client",
    ) -> AuthResult:
        """
        Create an account bound to exactly one role and open a session for it.

        If the role cannot be bound, the account is deleted again.

        Args:
            email: Email address (normalized before storage)
            password: Plain text password
            first_name: Given name
            last_name: Family name
            role: Role to bind; must already exist

        Returns:
            AuthResult with tokens on success
        """
        normalized_email = normalize_email(email)
        try:
            if await self.store.find_by_email(normalized_email) is not None:
                log_auth_event(AuditEvent.REGISTER, False, normalized_email, reason="duplicate email")
                return AuthResult.failure(AuthErrorCode.DUPLICATE_EMAIL, DUPLICATE_EMAIL_MESSAGE)

            user = User(
                email=normalized_email,
                first_name=first_name,
                last_name=last_name,
                is_active=True,
                access_failed_count=0,
                roles=[],
                organizations=[],
            )
            created = await self.store.create(user, password)
            if not created.succeeded:
                code = (
                    AuthErrorCode.DUPLICATE_EMAIL
                    if created.errors == [DUPLICATE_EMAIL_MESSAGE]
                    else AuthErrorCode.VALIDATION_FAILED
                )
                log_auth_event(AuditEvent.REGISTER, False, normalized_email, reason="; ".join(created.errors))
                return AuthResult.failure(code, *created.errors)

            user_id = user.id
            bound = await self._bind_role(user, role)
            if not bound.succeeded:
                # The account row is already committed; remove it again
                user = await self.store.find_by_id(user_id)
                if user is not None:
                    await self.store.delete(user)
                logger.warning(f"Registration rolled back for {normalized_email}: {bound.errors}")
                log_auth_event(
                    AuditEvent.REGISTER, False, normalized_email, user_id, reason="; ".join(bound.errors)
                )
                return AuthResult.failure(AuthErrorCode.ROLE_ASSIGNMENT_FAILED, *bound.errors)

            result = await self._open_session(user, user.roles[0].name)
            if result.success:
                log_auth_event(AuditEvent.REGISTER, True, normalized_email, result.user_id)
            return result

        except SQLAlchemyError as e:
            return await self._persistence_failure("register", e)

    async def _bind_role(self, user: User, role: str) -> IdentityResult:
        """Bind the registration role, reporting storage errors as a failed result."""
        user_id = user.id
        try:
            return await self.store.add_to_role(user, role)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Role binding failed for {user_id}: {e}", exc_info=e)
            return IdentityResult.failed(f"Role '{role}' could not be assigned.")

    # =========================================================================
    # Login
    # =========================================================================

    async def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
    ) -> AuthResult:
        """
        Authenticate with email and password, with account lockout.

        An account is locked for ``account_lockout_minutes`` once
        ``max_failed_login_attempts`` consecutive password checks fail. While
        locked, login fails without checking the password.

        Args:
            email: Account email
            password: Plain text password
            ip_address: Client address; when known, the attempt is recorded

        Returns:
            AuthResult with tokens on success
        """
        normalized_email = normalize_email(email)
        try:
            user = await self.store.find_by_email(normalized_email)
            if user is None:
                await self._record_login_attempt(normalized_email, None, ip_address, False)
                log_auth_event(AuditEvent.LOGIN, False, normalized_email, None, ip_address, "unknown account")
                return AuthResult.failure(AuthErrorCode.USER_NOT_FOUND, USER_NOT_FOUND_MESSAGE)

            if not user.is_active:
                await self._record_login_attempt(normalized_email, user.id, ip_address, False)
                log_auth_event(AuditEvent.LOGIN, False, normalized_email, user.id, ip_address, "account deactivated")
                return AuthResult.failure(AuthErrorCode.ACCOUNT_DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE)

            now = datetime.now(timezone.utc)
            if user.is_locked_out(now):
                remaining = math.ceil((user.lockout_end - now).total_seconds() / 60)
                await self._record_login_attempt(normalized_email, user.id, ip_address, False)
                log_auth_event(AuditEvent.LOGIN, False, normalized_email, user.id, ip_address, "account locked")
                return AuthResult.failure(
                    AuthErrorCode.ACCOUNT_LOCKED,
                    f"Account is locked. Please try again in {remaining} minutes.",
                )

            if user.lockout_end is not None:
                # Lockout window elapsed; start counting from zero again
                user.lockout_end = None
                user.access_failed_count = 0

            if not await self.store.check_password(user, password):
                return await self._handle_failed_login(user, ip_address)

            user.access_failed_count = 0
            user.lockout_end = None
            user.last_login_at = now

            roles = await self.store.get_roles(user)
            result = await self._open_session(user, roles[0] if roles else DEFAULT_ROLE)
            if result.success:
                await self._record_login_attempt(normalized_email, user.id, ip_address, True)
                log_auth_event(AuditEvent.LOGIN, True, normalized_email, result.user_id, ip_address)
                logger.info(f"Successful login: {result.user_id} ({normalized_email})")
            return result

        except SQLAlchemyError as e:
            return await self._persistence_failure("login", e)

    async def _handle_failed_login(self, user: User, ip_address: str | None) -> AuthResult:
        """Count a failed password check and lock the account at the threshold."""
        user.access_failed_count += 1
        user_id, email = user.id, user.email

        locked = user.access_failed_count >= self.config.max_failed_login_attempts
        if locked:
            user.lockout_end = datetime.now(timezone.utc) + timedelta(
                minutes=self.config.account_lockout_minutes
            )

        updated = await self.store.update(user)
        if not updated.succeeded:
            return AuthResult.failure(AuthErrorCode.PERSISTENCE_FAILED, *updated.errors)

        await self._record_login_attempt(email, user_id, ip_address, False)

        if locked:
            logger.warning(f"Account locked: {user_id} ({email})")
            log_auth_event(AuditEvent.ACCOUNT_LOCKED, False, email, user_id, ip_address, "too many failed logins")
            return AuthResult.failure(
                AuthErrorCode.ACCOUNT_LOCKED,
                "Account locked due to multiple failed login attempts. "
                f"Please try again in {self.config.account_lockout_minutes} minutes.",
            )

        log_auth_event(AuditEvent.LOGIN, False, email, user_id, ip_address, "invalid password")
        return AuthResult.failure(AuthErrorCode.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)

    async def _record_login_attempt(
        self,
        email: str,
        user_id: UUID | None,
        ip_address: str | None,
        success: bool,
    ) -> None:
        """Record login attempt for security auditing."""
        if not ip_address:
            return
        self.session.add(
            LoginAttempt(
                email=email,
                user_id=user_id,
                ip_address=ip_address,
                success=success,
            )
        )
        await self.session.commit()

    # =========================================================================
    # Refresh / revoke
    # =========================================================================

    async def refresh_token(self, access_token: str, refresh_token: str) -> AuthResult:
        """
        Exchange an (possibly expired) access token and the current refresh
        token for a new pair. The presented refresh token stops working.

        Args:
            access_token: Last access token issued to the session
            refresh_token: Refresh token issued alongside it

        Returns:
            AuthResult with the rotated tokens on success
        """
        try:
            claims = self.token_issuer.get_claims_from_expired_token(access_token)
        except InvalidTokenError:
            log_auth_event(AuditEvent.REFRESH, False, reason="invalid access token")
            return AuthResult.failure(AuthErrorCode.INVALID_TOKEN, INVALID_TOKEN_MESSAGE)

        email = claims.get("sub")
        try:
            user = await self.store.find_by_email(email) if email else None
            now = datetime.now(timezone.utc)
            if (
                user is None
                or not token_matches(refresh_token, user.refresh_token_hash)
                or user.refresh_token_expiry_time is None
                or user.refresh_token_expiry_time <= now
            ):
                log_auth_event(AuditEvent.REFRESH, False, email, reason="refresh token rejected")
                return AuthResult.failure(
                    AuthErrorCode.INVALID_REFRESH_TOKEN, INVALID_REFRESH_TOKEN_MESSAGE
                )

            if not user.is_active:
                log_auth_event(AuditEvent.REFRESH, False, email, user.id, reason="account deactivated")
                return AuthResult.failure(AuthErrorCode.ACCOUNT_DEACTIVATED, ACCOUNT_DEACTIVATED_MESSAGE)

            roles = await self.store.get_roles(user)
            result = await self._open_session(
                user,
                roles[0] if roles else DEFAULT_ROLE,
                concurrency_error=AuthErrorCode.INVALID_REFRESH_TOKEN,
            )
            log_auth_event(
                AuditEvent.REFRESH,
                result.success,
                email,
                result.user_id,
                reason=None if result.success else "concurrent rotation",
            )
            return result

        except SQLAlchemyError as e:
            return await self._persistence_failure("refresh", e)

    async def revoke_token(self, access_token: str) -> bool:
        """
        Invalidate the refresh token of the session that owns ``access_token``.

        Returns:
            True if the stored refresh token was cleared
        """
        try:
            claims = self.token_issuer.get_claims_from_expired_token(access_token)
        except InvalidTokenError:
            return False

        email = claims.get("sub")
        try:
            user = await self.store.find_by_email(email) if email else None
            if user is None:
                return False

            user_id = user.id
            user.refresh_token_hash = None
            user.refresh_token_expiry_time = None
            updated = await self.store.update(user)
            if updated.succeeded:
                log_auth_event(AuditEvent.REVOKE, True, email, user_id)
            return updated.succeeded

        except SQLAlchemyError as e:
            await self._persistence_failure("revoke", e)
            return False

    # =========================================================================
    # Passwords
    # =========================================================================

    async def generate_password_reset_token(self, email: str) -> str | None:
        """
        Issue a single-use password reset token.

        Returns:
            The token, or None when no account matches (not an error) or the
            token could not be stored
        """
        try:
            user = await self.store.find_by_email(email)
            if user is None:
                return None

            user_id, user_email = user.id, user.email
            token = await self.store.generate_password_reset_token(user)
            log_auth_event(AuditEvent.PASSWORD_RESET_REQUEST, True, user_email, user_id)
            return token

        except SQLAlchemyError as e:
            await self._persistence_failure("generate_password_reset_token", e)
            return None

    async def reset_password(self, email: str, token: str, new_password: str) -> bool:
        """
        Set a new password using a reset token.

        On success the failed-attempt counter and lockout are cleared and the
        stored refresh token is dropped, so existing sessions cannot be
        refreshed.

        Returns:
            True if the password was changed
        """
        normalized_email = normalize_email(email)
        try:
            user = await self.store.find_by_email(normalized_email)
            if user is None:
                log_auth_event(AuditEvent.PASSWORD_RESET, False, normalized_email, reason="unknown account")
                return False

            user_id = user.id
            reset = await self.store.reset_password(user, token, new_password)
            if not reset.succeeded:
                log_auth_event(
                    AuditEvent.PASSWORD_RESET, False, normalized_email, user_id, reason="; ".join(reset.errors)
                )
                return False

            user.access_failed_count = 0
            user.lockout_end = None
            user.refresh_token_hash = None
            user.refresh_token_expiry_time = None
            updated = await self.store.update(user)

            log_auth_event(AuditEvent.PASSWORD_RESET, updated.succeeded, normalized_email, user_id)
            return updated.succeeded

        except SQLAlchemyError as e:
            await self._persistence_failure("reset_password", e)
            return False

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
    ) -> IdentityResult:
        """
        Change the password of a signed-in account.

        Args:
            user_id: Account ID (from the access token)
            current_password: Current password for verification
            new_password: New password to set
        """
        try:
            user = await self.store.find_by_id(user_id)
            if user is None:
                return IdentityResult.failed(USER_NOT_FOUND_MESSAGE)

            result = await self.store.change_password(user, current_password, new_password)
        except SQLAlchemyError as e:
            failure = await self._persistence_failure("change_password", e)
            return IdentityResult.failed(*failure.errors)

        log_auth_event(
            AuditEvent.PASSWORD_CHANGE,
            result.succeeded,
            user_id=user_id,
            reason=None if result.succeeded else "; ".join(result.errors),
        )
        if result.succeeded:
            logger.info(f"Password changed: {user_id}")
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _open_session(
        self,
        user: User,
        role: str,
        concurrency_error: AuthErrorCode = AuthErrorCode.PERSISTENCE_FAILED,
    ) -> AuthResult:
        """Issue a token pair, persist the refresh token hash and build the payload."""
        refresh_token = self.token_issuer.generate_refresh_token()
        user.refresh_token_hash = hash_token(refresh_token)
        user.refresh_token_expiry_time = self.token_issuer.refresh_token_expiry()

        user_id, email = user.id, user.email
        first_name, last_name = user.first_name, user.last_name

        updated = await self.store.update(user)
        if not updated.succeeded:
            if concurrency_error == AuthErrorCode.INVALID_REFRESH_TOKEN:
                return AuthResult.failure(concurrency_error, INVALID_REFRESH_TOKEN_MESSAGE)
            return AuthResult.failure(concurrency_error, *updated.errors)

        access_token = self.token_issuer.create_access_token(
            user_id=user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        return AuthResult(
            success=True,
            access_token=access_token,
            refresh_token=refresh_token,
            user_id=user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
        )

    async def _persistence_failure(self, operation: str, error: SQLAlchemyError) -> AuthResult:
        await self.session.rollback()
        logger.error(f"Persistence failure during {operation}: {error}", exc_info=error)
        return AuthResult.failure(AuthErrorCode.PERSISTENCE_FAILED, str(error))
