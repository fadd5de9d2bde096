"""Pytest configuration and shared fixtures.

This module provides:
- In-memory SQLite database (aiosqlite + StaticPool) per test
- Async session fixtures for repository/service tests
- Organization fixtures (two tenants, so isolation can be checked)
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from factories import OrganizationFactory, OrganizationMemberFactory, create_async
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import core.locks as locks_module
from core.config import clear_settings_cache
from core.database import Base, configure_sqlite
from models import Organization, OrganizationMember, OrganizationRole

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# ENGINE AND SESSION FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_state():
    """Fresh settings and in-process locks for every test.

    asyncio.Lock binds to the loop it first waits on, and each test runs on
    its own loop.
    """
    clear_settings_cache()
    locks_module._local_locks.clear()
    yield
    locks_module._local_locks.clear()
    clear_settings_cache()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a fresh in-memory database engine for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession]:
    """Provide a database session for each test."""
    async with session_maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# TENANT FIXTURES
# =============================================================================


@pytest_asyncio.fixture
async def organization(db_session: AsyncSession) -> Organization:
    return await create_async(OrganizationFactory, db_session, slug="teatro-aurora")


@pytest_asyncio.fixture
async def other_organization(db_session: AsyncSession) -> Organization:
    """A second tenant whose rows must never leak into ``organization``."""
    return await create_async(OrganizationFactory, db_session, slug="teatro-nebbia")


@pytest_asyncio.fixture
async def admin_member(
    db_session: AsyncSession, organization: Organization
) -> OrganizationMember:
    return await create_async(
        OrganizationMemberFactory,
        db_session,
        organization_id=organization.id,
        user_id="user_admin",
        role=OrganizationRole.ADMIN,
    )


@pytest_asyncio.fixture
async def file_session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Sessions on a file database, each with its own connection.

    The in-memory engine shares one connection between sessions, so
    concurrent transactions need this one.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stagehand.db'}")
    configure_sqlite(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
