"""Tests for the create_admin command line script."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from scripts.create_admin import create_admin
from tracker.auth.credential_store import CredentialStore, IdentityResult
from tracker.models import User

PASSWORD = "Passw0rd!"


async def _count_users(session_factory):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(User))


class TestCreateAdmin:
    async def test_creates_admin(self, session_factory):
        await create_admin("root@example.com", PASSWORD, "Root", "Admin", session_factory=session_factory)

        async with session_factory() as session:
            user = await CredentialStore(session).find_by_email("root@example.com")
            assert user.role_names == ["Admin"]

    async def test_grants_admin_to_existing_account(self, session_factory, registered):
        await create_admin("alice@example.com", "ignored", "Alice", "Anders", session_factory=session_factory)

        async with session_factory() as session:
            user = await CredentialStore(session).find_by_email("alice@example.com")
            assert user.role_names == ["Admin", "Client"]

    async def test_rejected_role_removes_new_account(self, session_factory, monkeypatch):
        async def refuse(self, user, role_name):
            return IdentityResult.failed(f"Role '{role_name}' does not exist.")

        monkeypatch.setattr(CredentialStore, "add_to_role", refuse)

        with pytest.raises(ValueError, match="does not exist"):
            await create_admin("root@example.com", PASSWORD, "Root", "Admin", session_factory=session_factory)

        assert await _count_users(session_factory) == 0

    async def test_storage_error_removes_new_account(self, session_factory, monkeypatch):
        async def broken(self, user, role_name):
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        monkeypatch.setattr(CredentialStore, "add_to_role", broken)

        with pytest.raises(ValueError, match="could not be assigned"):
            await create_admin("root@example.com", PASSWORD, "Root", "Admin", session_factory=session_factory)

        assert await _count_users(session_factory) == 0

    async def test_weak_password(self, session_factory):
        with pytest.raises(ValueError, match="at least 8 characters"):
            await create_admin("root@example.com", "short", "Root", "Admin", session_factory=session_factory)
