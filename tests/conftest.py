"""
Pytest Configuration and Fixtures

Shared fixtures for unit and integration tests.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from bookstore.main import app
from bookstore.db.base import Base
from bookstore.db.models import Book, IdempotencyRecordRow, User  # noqa: F401
from bookstore.api.deps import get_db, get_entity_cache, get_event_publisher, get_result_store
from bookstore.core.cache import EntityCache
from bookstore.core.idempotency.store import InMemoryResultStore


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryResultStore:
    return InMemoryResultStore(clock=clock)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create test database and session factory."""
    # One shared connection keeps the in-memory database alive across sessions
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_publisher() -> MagicMock:
    """Create mock event publisher."""
    mock = MagicMock()
    mock.publish = MagicMock(return_value="message-id")
    return mock


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create mock Redis client."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.eval = AsyncMock(return_value=1)
    mock.delete = AsyncMock(return_value=1)
    mock.ping = AsyncMock(return_value=True)
    mock.aclose = AsyncMock()
    mock.scan_iter = MagicMock(side_effect=lambda **kwargs: _iterate([]))
    return mock


async def _iterate(items):
    for item in items:
        yield item


@pytest.fixture
def test_client() -> Generator:
    """Create test client for endpoints without dependencies."""
    # Not entered as a context manager, so the lifespan does not touch Postgres
    yield TestClient(app)


@pytest.fixture
def api_store() -> InMemoryResultStore:
    """Result store behind the API, on the real clock."""
    return InMemoryResultStore()


@pytest_asyncio.fixture
async def async_client(
    session_factory: async_sessionmaker,
    api_store: InMemoryResultStore,
    mock_publisher: MagicMock,
    mock_redis: MagicMock,
) -> AsyncGenerator:
    """Create async test client with overridden dependencies."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_result_store():
        yield api_store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_result_store] = override_get_result_store
    app.dependency_overrides[get_event_publisher] = lambda: mock_publisher
    app.dependency_overrides[get_entity_cache] = lambda: EntityCache(mock_redis, ttl=300, key_prefix="cache:")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_book_data() -> dict:
    """Sample book creation data."""
    return {
        "title": "The Pragmatic Programmer",
        "author": "David Thomas",
        "isbn": "9780135957059",
        "price": "49.99",
        "stock_quantity": 12,
        "category": "Software",
        "publication_year": 2019,
        "pages": 352,
    }


@pytest.fixture
def sample_user_data() -> dict:
    """Sample user creation data."""
    return {
        "username": "jdoe",
        "email": "jdoe@example.com",
        "first_name": "Jane",
        "last_name": "Doe",
        "phone_number": "+15551234567",
        "city": "Lisbon",
        "country": "Portugal",
    }
