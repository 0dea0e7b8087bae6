"""
Shared test fixtures for the pacer tests.

Provides database session management, a controllable clock, bucket and
scheduler factories, and an HTTP test client.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pacer.config import settings
from pacer.database import Base, get_db
from pacer.main import app

# Import models so they're registered with Base.metadata before table creation
from pacer.models import Record, TokenBucketState, UsageCount  # noqa: F401
from pacer.services.bucket import TokenBucket
from pacer.services.scheduler import Scheduler

# Test database URL (uses separate test database)
TEST_DATABASE_URL = settings.test_database_url

# Create test engine with NullPool to avoid connection issues
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=NullPool,
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

START = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock for bucket guards that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.current = start

    async def now(self, session: AsyncSession) -> datetime:
        return self.current

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current += timedelta(**delta)
        return self.current


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def tables() -> AsyncGenerator[None, None]:
    """
    Create tables before each test function, drop after.
    Provides isolated database state per test.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def sessions(tables) -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the services, one transaction per operation."""
    return TestSessionLocal


@pytest_asyncio.fixture(scope="function")
async def db_session(tables) -> AsyncGenerator[AsyncSession, None]:
    """A session for direct reads in tests and request handlers."""
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


# --- Service Fixtures ---


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_bucket(sessions, clock):
    """Factory fixture for buckets sharing the test database and clock."""

    def _make_bucket(name: str = "test", **kwargs: Any) -> TokenBucket:
        kwargs.setdefault("clock", clock)
        return TokenBucket(name, sessions, **kwargs)

    return _make_bucket


@pytest.fixture
def region_rulebook() -> list[dict[str, Any]]:
    """Rulebook with one regional rule and a default."""
    return [
        {"name": "eu", "match": {"region": "EU"}, "updateEvery": "30m"},
        {"default": True, "updateEvery": "6h"},
    ]


# --- HTTP Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession, make_bucket, region_rulebook
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client configured for testing.
    Overrides database dependency with test session and installs services on app.state.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.bucket = make_bucket()
    app.state.scheduler = Scheduler(region_rulebook)
    app.state.pacer = None

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client

    app.dependency_overrides.clear()
    app.state.bucket = None
    app.state.scheduler = None


# --- Utility Fixtures ---


@pytest.fixture
def frozen_time():
    """
    Fixture for time-based testing using freezegun.

    Usage:
        with frozen_time("2026-02-01 12:00:00"):
            # time is frozen
    """
    from freezegun import freeze_time

    return freeze_time
