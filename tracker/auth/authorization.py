"""
Authorization
Known roles, role assignment rules and organization access checks.
"""

from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tracker.auth.credential_store import CredentialStore
from tracker.auth.tokens import TokenClaims


class RoleName(str, Enum):
    """Roles the tracker knows about."""

    ADMIN = "Admin"
    ORGANIZATION_ADMIN = "OrganizationAdmin"
    ORGANIZATION_USER = "OrganizationUser"
    MANAGER = "Manager"
    USER = "User"
    CLIENT = "Client"


KNOWN_ROLES = [role.value for role in RoleName]

# Roles an anonymous caller may request for themselves at registration
SELF_REGISTRATION_ROLES = {RoleName.CLIENT.value, RoleName.USER.value}


def canonical_role_name(name: str) -> Optional[str]:
    """Known role matching ``name`` case-insensitively, or None."""
    lowered = name.strip().lower()
    for role in KNOWN_ROLES:
        if role.lower() == lowered:
            return role
    return None


def is_known_role(name: str) -> bool:
    return canonical_role_name(name) is not None


def can_assign_role(role: str, caller: Optional[TokenClaims]) -> bool:
    """
    Whether ``caller`` may create an account bound to ``role``.

    Anyone may self-register as Client or User. Every other known role can
    only be granted by an Admin.
    """
    canonical = canonical_role_name(role)
    if canonical is None:
        return False
    if canonical in SELF_REGISTRATION_ROLES:
        return True
    return caller is not None and caller.role == RoleName.ADMIN.value


def has_any_role(claims: TokenClaims, *roles: str) -> bool:
    wanted = {role.lower() for role in roles}
    return claims.role.lower() in wanted


async def is_authorized_for_organization(
    session: AsyncSession,
    claims: TokenClaims,
    organization_id: UUID,
) -> bool:
    """
    Organization access check used by every organization-scoped resource.

    Admin sessions may access any organization; any other session only the
    organizations its account is a member of.
    """
    if claims.role == RoleName.ADMIN.value:
        return True
    return await CredentialStore(session).is_member(claims.user_id, organization_id)


async def get_primary_organization_id(session: AsyncSession, user_id: UUID) -> Optional[UUID]:
    return await CredentialStore(session).get_primary_organization_id(user_id)
