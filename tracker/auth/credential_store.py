"""
Credential Store
Account persistence, password verification, role binding and
purpose-scoped single-use tokens.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from tracker.auth.utils import (
    generate_secure_token,
    hash_password,
    hash_token,
    normalize_email,
    validate_password_strength,
    verify_password,
)
from tracker.config import Settings, settings
from tracker.models import Organization, Role, User, UserToken, user_organizations

logger = logging.getLogger(__name__)

RESET_PASSWORD_PURPOSE = "ResetPassword"

DUPLICATE_EMAIL_MESSAGE = "User with this email already exists."
CONCURRENCY_FAILURE_MESSAGE = "Optimistic concurrency failure, object has been modified."


@dataclass
class IdentityResult:
    """Outcome of a credential store write."""

    succeeded: bool
    errors: list[str] = field(default_factory=list)

    @classmethod
    def success(cls) -> "IdentityResult":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, *errors: str) -> "IdentityResult":
        return cls(succeeded=False, errors=list(errors))


class CredentialStore:
    """SQLAlchemy-backed store for accounts, roles and user tokens."""

    def __init__(self, session: AsyncSession, config: Settings = settings):
        self.session = session
        self.config = config

    # =========================================================================
    # Accounts
    # =========================================================================

    async def find_by_email(self, email: str) -> User | None:
        """
        Get an account by email address (normalized).

        Args:
            email: Email as typed by the user

        Returns:
            User if found, None otherwise
        """
        query = select(User).where(User.email == normalize_email(email))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: UUID) -> User | None:
        query = select(User).where(User.id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(self, user: User, password: str) -> IdentityResult:
        """
        Persist a new account with a hashed password.

        Nothing is written when the email is malformed, already taken, or the
        password violates the policy.

        Args:
            user: Transient account (email, names, flags already set)
            password: Plain text password

        Returns:
            IdentityResult with every validation error on failure
        """
        errors = []
        user.email = normalize_email(user.email)

        try:
            validate_email(user.email, check_deliverability=False)
        except EmailNotValidError:
            errors.append(f"Email '{user.email}' is invalid.")

        is_valid, password_errors = validate_password_strength(password, self.config)
        if not is_valid:
            errors.extend(password_errors)

        if errors:
            return IdentityResult.failed(*errors)

        if await self.find_by_email(user.email) is not None:
            return IdentityResult.failed(DUPLICATE_EMAIL_MESSAGE)

        email = user.email
        user.password_hash = hash_password(password)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Duplicate account insert rejected: {email}")
            return IdentityResult.failed(DUPLICATE_EMAIL_MESSAGE)

        logger.info(f"User created: {user.id} ({user.email})")
        return IdentityResult.success()

    async def update(self, user: User) -> IdentityResult:
        """
        Persist pending changes to an account.

        A concurrent write that bumped the account's version first makes
        this update fail instead of overwriting it.
        """
        try:
            await self.session.commit()
        except StaleDataError:
            await self.session.rollback()
            logger.warning("Concurrent update detected on account")
            return IdentityResult.failed(CONCURRENCY_FAILURE_MESSAGE)
        return IdentityResult.success()

    async def delete(self, user: User) -> IdentityResult:
        user_id = user.id
        await self.session.delete(user)
        await self.session.commit()
        logger.info(f"User deleted: {user_id}")
        return IdentityResult.success()

    async def check_password(self, user: User, password: str) -> bool:
        return verify_password(password, user.password_hash)

    async def change_password(
        self,
        user: User,
        current_password: str,
        new_password: str,
    ) -> IdentityResult:
        """
        Replace the password after verifying the current one.

        Args:
            user: Account
            current_password: Password the caller claims is current
            new_password: Replacement (must satisfy the policy)
        """
        if not verify_password(current_password, user.password_hash):
            return IdentityResult.failed("Incorrect password.")

        is_valid, errors = validate_password_strength(new_password, self.config)
        if not is_valid:
            return IdentityResult.failed(*errors)

        user.password_hash = hash_password(new_password)
        user.access_failed_count = 0
        user.lockout_end = None
        return await self.update(user)

    # =========================================================================
    # Roles
    # =========================================================================

    async def find_role(self, role_name: str) -> Role | None:
        query = select(Role).where(func.lower(Role.name) == role_name.strip().lower())
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_roles(self, user: User) -> list[str]:
        return user.role_names

    async def add_to_role(self, user: User, role_name: str) -> IdentityResult:
        """
        Bind an existing role to an account.

        Role names match case-insensitively. Unknown roles are not created.
        """
        role = await self.find_role(role_name)
        if role is None:
            return IdentityResult.failed(f"Role '{role_name}' does not exist.")

        if any(existing.id == role.id for existing in user.roles):
            return IdentityResult.failed(f"User already in role '{role.name}'.")

        user.roles.append(role)
        await self.session.commit()
        return IdentityResult.success()

    async def ensure_roles(self, role_names: list[str]) -> list[str]:
        """
        Create any of the given roles that do not exist yet.

        Returns:
            Names of the roles that were created
        """
        result = await self.session.execute(select(Role.name))
        existing = {name.lower() for name in result.scalars().all()}

        created = []
        for name in role_names:
            if name.lower() not in existing:
                self.session.add(Role(name=name))
                existing.add(name.lower())
                created.append(name)

        if created:
            await self.session.commit()
            logger.info(f"Roles created: {', '.join(created)}")
        return created

    # =========================================================================
    # Organizations
    # =========================================================================

    async def add_to_organization(self, user: User, organization: Organization) -> IdentityResult:
        if any(existing.id == organization.id for existing in user.organizations):
            return IdentityResult.failed(f"User already in organization '{organization.name}'.")

        user.organizations.append(organization)
        await self.session.commit()
        return IdentityResult.success()

    async def is_member(self, user_id: UUID, organization_id: UUID) -> bool:
        query = select(user_organizations.c.user_id).where(
            and_(
                user_organizations.c.user_id == user_id,
                user_organizations.c.organization_id == organization_id,
            )
        )
        result = await self.session.execute(query)
        return result.first() is not None

    async def get_primary_organization_id(self, user_id: UUID) -> UUID | None:
        """Organization the account joined first, if any."""
        query = (
            select(user_organizations.c.organization_id)
            .where(user_organizations.c.user_id == user_id)
            .order_by(user_organizations.c.joined_at)
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    # =========================================================================
    # Purpose-scoped tokens
    # =========================================================================

    async def generate_user_token(
        self,
        user: User,
        purpose: str,
        lifetime: timedelta,
    ) -> str:
        """
        Issue a single-use token for one purpose.

        Returns:
            The token value; only its hash is stored
        """
        token = generate_secure_token()
        self.session.add(
            UserToken(
                user_id=user.id,
                purpose=purpose,
                token_hash=hash_token(token),
                expires_at=datetime.now(timezone.utc) + lifetime,
            )
        )
        await self.session.commit()
        return token

    async def verify_user_token(self, user: User, purpose: str, token: str) -> bool:
        return await self._find_valid_token(user, purpose, token) is not None

    async def generate_password_reset_token(self, user: User) -> str:
        return await self.generate_user_token(
            user,
            RESET_PASSWORD_PURPOSE,
            timedelta(minutes=self.config.password_reset_token_expire_minutes),
        )

    async def reset_password(self, user: User, token: str, new_password: str) -> IdentityResult:
        """
        Set a new password using a reset token.

        The token is consumed only when the new password is accepted. On
        success every other outstanding reset token of the account is
        invalidated as well.

        Args:
            user: Account
            token: Reset token previously issued to the account
            new_password: Replacement password
        """
        record = await self._find_valid_token(user, RESET_PASSWORD_PURPOSE, token)
        if record is None:
            return IdentityResult.failed("Invalid token.")

        is_valid, errors = validate_password_strength(new_password, self.config)
        if not is_valid:
            return IdentityResult.failed(*errors)

        now = datetime.now(timezone.utc)
        user.password_hash = hash_password(new_password)

        query = select(UserToken).where(
            and_(
                UserToken.user_id == user.id,
                UserToken.purpose == RESET_PASSWORD_PURPOSE,
                UserToken.is_used == False,  # noqa: E712
            )
        )
        result = await self.session.execute(query)
        for outstanding in result.scalars().all():
            outstanding.is_used = True
            outstanding.used_at = now

        return await self.update(user)

    async def _find_valid_token(self, user: User, purpose: str, token: str) -> UserToken | None:
        query = select(UserToken).where(
            and_(
                UserToken.user_id == user.id,
                UserToken.purpose == purpose,
                UserToken.token_hash == hash_token(token),
            )
        )
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        if record is None or not record.is_valid():
            return None
        return record
