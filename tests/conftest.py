"""
Pytest configuration and fixtures for the CodeCollab test suite.

Provides an in-memory database, an HTTP client bound to a fresh app,
user factories and a recorder for security events.
"""

import logging
import os
import uuid
from datetime import timedelta
from typing import AsyncGenerator

# Settings are read once at import time, so the test environment must
# be in place before anything from codecollab is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["AUTH_COOKIE_SECURE"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from codecollab.core.database import get_db
from codecollab.core.security import hash_password
from codecollab.main import create_app
from codecollab.models import Base, UserSession
from codecollab.models.base import utcnow
from codecollab.models.user import User, UserRole
from codecollab.rbac.permissions import default_permissions_for_role
from tests.helpers import TEST_PASSWORD


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """
    In-memory SQLite with StaticPool so every connection shares the
    same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# App / Client Fixtures
# ============================================================================

@pytest.fixture
def app(db_session: AsyncSession) -> FastAPI:
    """
    A fresh application per test.

    Every request shares THE SAME db_session, so rows created by
    fixtures are visible to the routes and vice versa.
    """
    application = create_app()

    async def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory: `await make_user(role=UserRole.ADMIN, ...)`."""

    async def _make_user(
        role: UserRole = UserRole.USER,
        email: str | None = None,
        username: str | None = None,
        password: str = TEST_PASSWORD,
        permissions: list[str] | None = None,
        **fields,
    ) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            id=uuid.uuid4(),
            email=email or f"{role.value}-{suffix}@example.com",
            username=username or f"{role.value}_{suffix}",
            password_hash=hash_password(password),
            role=role,
            permissions=permissions if permissions is not None else default_permissions_for_role(role),
            is_active=fields.pop("is_active", True),
            is_suspended=fields.pop("is_suspended", False),
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def regular_user(make_user) -> User:
    return await make_user(UserRole.USER, email="user@example.com", username="regular_user")


@pytest_asyncio.fixture
async def moderator_user(make_user) -> User:
    return await make_user(UserRole.MODERATOR, email="moderator@example.com", username="moderator")


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(UserRole.ADMIN, email="admin@example.com", username="admin")


@pytest.fixture
def make_session(db_session: AsyncSession):
    """Factory for raw session rows with explicit timestamps."""

    async def _make_session(user: User, **fields) -> UserSession:
        now = utcnow()
        session = UserSession(
            id=uuid.uuid4(),
            user_id=user.id,
            access_token_hash=uuid.uuid4().hex + uuid.uuid4().hex,
            refresh_token_hash=uuid.uuid4().hex + uuid.uuid4().hex,
            is_active=fields.pop("is_active", True),
            platform=fields.pop("platform", "Unknown"),
            browser=fields.pop("browser", "Unknown"),
            last_activity=fields.pop("last_activity", now),
            expires_at=fields.pop("expires_at", now + timedelta(days=7)),
            **fields,
        )
        db_session.add(session)
        await db_session.flush()
        return session

    return _make_session


# ============================================================================
# Security Event Recorder
# ============================================================================

@pytest.fixture
def security_events(caplog):
    """
    Records emitted on the security sink.

        events = security_events()           -> list of event names
        security_events.records("RBAC_...")  -> matching log records
    """
    caplog.set_level(logging.INFO, logger="codecollab.security")

    class _Recorder:
        def records(self, name: str | None = None) -> list[logging.LogRecord]:
            return [
                r for r in caplog.records
                if hasattr(r, "security_event") and (name is None or r.security_event == name)
            ]

        def __call__(self) -> list[str]:
            return [r.security_event for r in self.records()]

        def count(self, name: str) -> int:
            return len(self.records(name))

        def clear(self) -> None:
            caplog.clear()

    return _Recorder()
