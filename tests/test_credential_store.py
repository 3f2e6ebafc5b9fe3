"""Tests for CredentialStore - accounts, roles and single-use tokens."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from tracker.auth.credential_store import RESET_PASSWORD_PURPOSE, IdentityResult
from tracker.auth.utils import verify_password
from tracker.models import Organization, User, UserToken

PASSWORD = "Passw0rd!"


def _new_user(email="carol@example.com"):
    return User(email=email, first_name="Carol", last_name="Chen", roles=[], organizations=[])


@pytest.fixture
async def carol(store):
    user = _new_user()
    result = await store.create(user, PASSWORD)
    assert result.succeeded, result.errors
    return user


class TestCreate:
    """Account creation."""

    async def test_normalizes_email(self, store):
        user = _new_user("  Carol@Example.COM ")
        assert (await store.create(user, PASSWORD)).succeeded
        assert user.email == "carol@example.com"
        assert await store.find_by_email("CAROL@example.com") is not None

    async def test_hashes_password(self, store, carol):
        assert carol.password_hash != PASSWORD
        assert verify_password(PASSWORD, carol.password_hash)

    async def test_rejects_duplicate_email(self, store, carol):
        result = await store.create(_new_user("CAROL@example.com"), PASSWORD)
        assert result == IdentityResult.failed("User with this email already exists.")

    async def test_reports_every_policy_violation_in_order(self, store):
        result = await store.create(_new_user(), "abc")

        assert not result.succeeded
        assert result.errors == [
            "Password must be at least 8 characters long.",
            "Password must contain at least one uppercase letter.",
            "Password must contain at least one digit.",
            "Password must contain at least one special character.",
        ]
        assert await store.find_by_email("carol@example.com") is None

    async def test_rejects_malformed_email(self, store):
        result = await store.create(_new_user("not-an-email"), PASSWORD)
        assert not result.succeeded
        assert result.errors == ["Email 'not-an-email' is invalid."]


class TestPasswords:
    """Password checks and changes."""

    async def test_check_password(self, store, carol):
        assert await store.check_password(carol, PASSWORD)
        assert not await store.check_password(carol, "Wr0ng!pass")

    async def test_change_password(self, store, carol):
        carol.access_failed_count = 3
        result = await store.change_password(carol, PASSWORD, "N3w!Password")

        assert result.succeeded
        assert await store.check_password(carol, "N3w!Password")
        assert carol.access_failed_count == 0

    async def test_change_password_requires_current(self, store, carol):
        result = await store.change_password(carol, "Wr0ng!pass", "N3w!Password")
        assert result.errors == ["Incorrect password."]

    async def test_change_password_applies_policy(self, store, carol):
        result = await store.change_password(carol, PASSWORD, "short")
        assert not result.succeeded
        assert await store.check_password(carol, PASSWORD)


class TestRoles:
    """Role binding."""

    async def test_add_to_role(self, store, carol):
        assert (await store.add_to_role(carol, "Client")).succeeded
        assert await store.get_roles(carol) == ["Client"]

    async def test_role_names_match_case_insensitively(self, store, carol):
        assert (await store.add_to_role(carol, "organizationadmin")).succeeded
        assert await store.get_roles(carol) == ["OrganizationAdmin"]

    async def test_unknown_role_fails(self, store, carol):
        result = await store.add_to_role(carol, "Overlord")
        assert result.errors == ["Role 'Overlord' does not exist."]
        assert await store.get_roles(carol) == []

    async def test_role_bound_once(self, store, carol):
        await store.add_to_role(carol, "User")
        result = await store.add_to_role(carol, "User")
        assert not result.succeeded

    async def test_ensure_roles_is_idempotent(self, store):
        assert await store.ensure_roles(["Admin", "Auditor"]) == ["Auditor"]
        assert await store.ensure_roles(["Admin", "Auditor"]) == []


class TestDelete:
    async def test_delete_removes_account(self, store, carol):
        await store.add_to_role(carol, "Client")
        await store.delete(carol)
        assert await store.find_by_email("carol@example.com") is None


class TestOrganizations:
    """Organization membership."""

    async def test_primary_organization_is_earliest_joined(self, session, store, carol):
        first = Organization(name="First Response")
        second = Organization(name="Second Line")
        session.add_all([first, second])
        await session.commit()

        await store.add_to_organization(carol, first)
        await store.add_to_organization(carol, second)

        assert await store.is_member(carol.id, first.id)
        assert await store.is_member(carol.id, second.id)
        assert await store.get_primary_organization_id(carol.id) == first.id

    async def test_no_organization(self, store, carol):
        assert await store.get_primary_organization_id(carol.id) is None


class TestConcurrency:
    """Optimistic versioning of account rows."""

    async def test_stale_update_fails(self, session, store, carol):
        await session.execute(
            update(User)
            .where(User.id == carol.id)
            .values(version=User.version + 1)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        carol.first_name = "Caroline"
        result = await store.update(carol)

        assert not result.succeeded
        assert result.errors == ["Optimistic concurrency failure, object has been modified."]


class TestUserTokens:
    """Purpose-scoped single-use tokens."""

    async def test_token_valid_only_for_its_purpose(self, store, carol):
        token = await store.generate_user_token(carol, "ConfirmEmail", timedelta(hours=1))

        assert await store.verify_user_token(carol, "ConfirmEmail", token)
        assert not await store.verify_user_token(carol, RESET_PASSWORD_PURPOSE, token)

    async def test_only_hash_is_stored(self, session, store, carol):
        token = await store.generate_password_reset_token(carol)
        stored = (await session.execute(select(UserToken.token_hash))).scalars().all()
        assert token not in stored
        assert len(stored) == 1

    async def test_expired_token_rejected(self, store, carol):
        token = await store.generate_user_token(carol, RESET_PASSWORD_PURPOSE, timedelta(minutes=-1))
        assert not await store.verify_user_token(carol, RESET_PASSWORD_PURPOSE, token)

    async def test_reset_password_consumes_token(self, store, carol):
        token = await store.generate_password_reset_token(carol)

        assert (await store.reset_password(carol, token, "N3w!Password")).succeeded
        assert await store.check_password(carol, "N3w!Password")

        second = await store.reset_password(carol, token, "An0ther!Password")
        assert second.errors == ["Invalid token."]

    async def test_reset_password_invalidates_other_tokens(self, store, carol):
        older = await store.generate_password_reset_token(carol)
        newer = await store.generate_password_reset_token(carol)

        assert (await store.reset_password(carol, newer, "N3w!Password")).succeeded
        assert not await store.verify_user_token(carol, RESET_PASSWORD_PURPOSE, older)

    async def test_rejected_password_keeps_token(self, store, carol):
        token = await store.generate_password_reset_token(carol)

        assert not (await store.reset_password(carol, token, "weak")).succeeded
        assert await store.verify_user_token(carol, RESET_PASSWORD_PURPOSE, token)

    async def test_token_lifetime_follows_settings(self, session, store, carol):
        await store.generate_password_reset_token(carol)
        record = (await session.execute(select(UserToken))).scalar_one()

        expected = datetime.now(timezone.utc) + timedelta(minutes=60)
        assert abs((record.expires_at - expected).total_seconds()) < 5
