"""Tests for role rules and the organization access check."""

import uuid

import pytest

from tracker.auth.authorization import (
    KNOWN_ROLES,
    can_assign_role,
    canonical_role_name,
    get_primary_organization_id,
    is_authorized_for_organization,
    is_known_role,
)
from tracker.auth.tokens import TokenClaims
from tracker.models import Organization


def _claims(role, user_id=None):
    return TokenClaims(
        user_id=user_id or uuid.uuid4(),
        email="someone@example.com",
        first_name="Some",
        last_name="One",
        role=role,
        jti=str(uuid.uuid4()),
    )


@pytest.fixture
async def organizations(session):
    north = Organization(name="North District")
    south = Organization(name="South District")
    session.add_all([north, south])
    await session.commit()
    return north, south


class TestRoles:
    def test_known_roles(self):
        assert set(KNOWN_ROLES) == {
            "Admin",
            "OrganizationAdmin",
            "OrganizationUser",
            "Manager",
            "User",
            "Client",
        }

    def test_lookup_is_case_insensitive(self):
        assert canonical_role_name("organizationuser") == "OrganizationUser"
        assert is_known_role("ADMIN")
        assert not is_known_role("Overlord")

    @pytest.mark.parametrize("role", ["Client", "User", "client"])
    def test_anyone_may_self_register_as(self, role):
        assert can_assign_role(role, None)

    @pytest.mark.parametrize("role", ["Admin", "OrganizationAdmin", "OrganizationUser", "Manager"])
    def test_privileged_roles_need_admin(self, role):
        assert not can_assign_role(role, None)
        assert not can_assign_role(role, _claims("Manager"))
        assert can_assign_role(role, _claims("Admin"))

    def test_unknown_role_never_assignable(self):
        assert not can_assign_role("Overlord", _claims("Admin"))


class TestOrganizationAccess:
    """Admin reaches every organization, others only their own."""

    async def test_admin_sees_everything(self, session, organizations):
        north, south = organizations
        admin = _claims("Admin")

        assert await is_authorized_for_organization(session, admin, north.id)
        assert await is_authorized_for_organization(session, admin, south.id)

    async def test_member_sees_own_organization_only(self, session, store, auth_service, registered, organizations):
        north, south = organizations
        user = await store.find_by_id(registered.user_id)
        await store.add_to_organization(user, north)

        claims = _claims("Client", user_id=registered.user_id)

        assert await is_authorized_for_organization(session, claims, north.id)
        assert not await is_authorized_for_organization(session, claims, south.id)

    async def test_organization_admin_is_not_global(self, session, organizations):
        north, _ = organizations
        claims = _claims("OrganizationAdmin")
        assert not await is_authorized_for_organization(session, claims, north.id)

    async def test_primary_organization(self, session, store, registered, organizations):
        north, south = organizations
        user = await store.find_by_id(registered.user_id)
        await store.add_to_organization(user, south)
        await store.add_to_organization(user, north)

        assert await get_primary_organization_id(session, registered.user_id) == south.id
