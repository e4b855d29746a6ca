"""
Global pytest configuration and fixtures for the Signal Radar test suite.

Tests run against an in-memory SQLite database (aiosqlite) created fresh for
every test; external providers are replaced by fakes, never called.
"""

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.features.core.database import Base, get_db
from app.features.core.audit_mixin import AuditContext
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_TENANT = "tenant-test"


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """Create a test database engine with every table."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db_session(test_db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(test_db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """API client bound to the test session, acting for TEST_TENANT."""

    async def override_get_db():
        yield test_db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        headers={"X-Tenant-ID": TEST_TENANT, "X-User-Email": "alice@example.com", "X-User-Name": "Alice"},
    ) as client:
        yield client

    del app.dependency_overrides[get_db]


@pytest.fixture
def tenant_id() -> str:
    return TEST_TENANT


@pytest.fixture
def user() -> AuditContext:
    return AuditContext("alice@example.com", "Alice")
