"""
Create Admin User Script
Simple script to create admin accounts from the command line.
"""

import asyncio
import getpass
import sys
from pathlib import Path

# Add parent directory to path to import tracker modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from tracker.auth.authorization import KNOWN_ROLES, RoleName
from tracker.auth.credential_store import CredentialStore, IdentityResult
from tracker.auth.utils import normalize_email
from tracker.database.connection import async_session_factory
from tracker.models import Role, User


async def list_admins() -> None:
    """List all current admin accounts."""
    async with async_session_factory() as session:
        stmt = (
            select(User)
            .join(User.roles)
            .where(Role.name == RoleName.ADMIN.value)
            .order_by(User.email)
        )
        result = await session.execute(stmt)
        admins = result.scalars().unique().all()

        if not admins:
            print("\n📋 No admin users found.")
        else:
            print(f"\n📋 Current Admin Users ({len(admins)}):")
            print("-" * 60)
            for admin in admins:
                status = "✓ Active" if admin.is_active else "✗ Inactive"
                print(f"  • {admin.email} ({status})")
            print("-" * 60)


async def create_admin(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    session_factory=async_session_factory,
) -> None:
    """
    Create a new admin account or grant Admin to an existing one.

    A newly created account that cannot be bound to Admin is deleted again
    and ValueError is raised.
    """
    async with session_factory() as session:
        store = CredentialStore(session)
        await store.ensure_roles(KNOWN_ROLES)
        normalized_email = normalize_email(email)

        user = await store.find_by_email(normalized_email)
        created_now = user is None
        if created_now:
            user = User(
                email=normalized_email,
                first_name=first_name,
                last_name=last_name,
                is_active=True,
                roles=[],
                organizations=[],
            )
            created = await store.create(user, password)
            if not created.succeeded:
                raise ValueError(" ".join(created.errors))
            print(f"\n✅ Created new account: {normalized_email}")

        user_id = user.id
        try:
            granted = await store.add_to_role(user, RoleName.ADMIN.value)
        except SQLAlchemyError as e:
            await session.rollback()
            granted = IdentityResult.failed(f"Role '{RoleName.ADMIN.value}' could not be assigned: {e}")

        if not granted.succeeded:
            if not created_now:
                print(f"\n❌ {' '.join(granted.errors)}")
                return
            user = await store.find_by_id(user_id)
            if user is not None:
                await store.delete(user)
            raise ValueError(f"{' '.join(granted.errors)} Account {normalized_email} was not kept.")

        print(f"\n✅ Granted Admin role to {normalized_email}.")


async def main() -> None:
    """Main script entry point."""
    print("=" * 60)
    print("🔐 Create Admin User")
    print("=" * 60)

    await list_admins()

    print("\n" + "=" * 60)
    email = input("📧 Enter email address: ").strip()
    if not email:
        print("\n❌ Email is required.")
        sys.exit(1)

    first_name = input("👤 First name: ").strip()
    last_name = input("👤 Last name: ").strip()

    password = getpass.getpass("🔑 Enter password: ").strip()
    if not password:
        print("\n❌ Password is required.")
        sys.exit(1)

    print("\n" + "=" * 60)
    confirm = input(f"Create admin user '{email}'? (yes/no): ").strip().lower()
    if confirm not in ["yes", "y"]:
        print("\n❌ Cancelled.")
        sys.exit(0)

    try:
        await create_admin(email, password, first_name, last_name)
        print("\n✅ Done!")
    except ValueError as e:
        print(f"\n❌ Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
