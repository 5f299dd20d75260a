"""
One-time bootstrap script — creates the first ADMIN user.

Usage:
    uv run python -m codecollab.scripts.create_admin

You only need this ONCE. After the first admin exists, other accounts
register themselves and are promoted from the admin panel.
"""

import asyncio
import getpass
import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from codecollab.core.config import settings
from codecollab.core.security import hash_password
from codecollab.models.user import User, UserRole
from codecollab.rbac.permissions import default_permissions_for_role


async def create_admin_user(
    session: AsyncSession,
    email: str,
    username: str,
    password: str,
) -> User:
    """Insert an active admin with the full admin permission bundle."""
    email = email.strip().lower()
    existing = (
        await session.execute(
            select(User).where(or_(User.email == email, User.username == username))
        )
    ).scalar_one_or_none()
    if existing:
        raise ValueError(f"User with email '{email}' or username '{username}' already exists.")

    admin_user = User(
        id=uuid.uuid4(),
        email=email,
        username=username,
        password_hash=hash_password(password),
        role=UserRole.ADMIN,
        permissions=default_permissions_for_role(UserRole.ADMIN),
        is_active=True,
        is_suspended=False,
    )
    session.add(admin_user)
    await session.flush()
    return admin_user


async def create_admin() -> None:
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as session:
        # ── Collect input ────────────────────────────────────────────
        print(f"\n🔧  {settings.APP_NAME} — First Admin Setup\n")
        email = input("  Admin email: ").strip()
        username = input("  Username:    ").strip()
        password = getpass.getpass("  Password:    ")
        confirm = getpass.getpass("  Confirm:     ")

        if password != confirm:
            print("\n❌  Passwords do not match.")
            await engine.dispose()
            return

        if not email or not username or not password:
            print("\n❌  All fields are required.")
            await engine.dispose()
            return

        try:
            admin_user = await create_admin_user(session, email, username, password)
        except ValueError as exc:
            print(f"\n❌  {exc}")
            await engine.dispose()
            return
        await session.commit()

        print("\n✅  Admin user created successfully!")
        print(f"    ID:    {admin_user.id}")
        print(f"    Email: {admin_user.email}")
        print("    Role:  admin")
        print("\n   You can now log in via POST /api/auth/login\n")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(create_admin())
