"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ledger.api.revenue import get_event_handler
from ledger.db.base import Base
from ledger.db.session import get_db
from ledger.main import app
from ledger.models.revenue import Revenue
from ledger.services.revenue.dead_letter import RedisDeadLetterSink
from ledger.services.revenue.handler import RevenueEventHandler
from ledger.services.revenue.idempotency import InMemoryIdempotencyStore
from ledger.services.revenue.repository import RepositoryScope, sqlalchemy_repository_scope

DEAD_LETTER_KEY = "test:revenue:dead_letter"


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine.

    File-backed SQLite so that every session sees the same database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository_scope(session_factory: async_sessionmaker[AsyncSession]) -> RepositoryScope:
    """Transactional repository scope over the test database."""
    return sqlalchemy_repository_scope(session_factory)


@pytest_asyncio.fixture(scope="function")
async def test_redis() -> AsyncGenerator[Any, None]:
    """Create fake Redis client for testing."""
    redis_client = fakeredis.FakeRedis(decode_responses=True)
    yield redis_client
    await redis_client.flushall()
    await redis_client.aclose()


@pytest.fixture
def idempotency_store() -> InMemoryIdempotencyStore:
    return InMemoryIdempotencyStore()


@pytest.fixture
def dead_letters(test_redis: Any) -> RedisDeadLetterSink:
    return RedisDeadLetterSink(test_redis, key=DEAD_LETTER_KEY, max_entries=100)


@pytest.fixture
def event_handler(
    repository_scope: RepositoryScope,
    idempotency_store: InMemoryIdempotencyStore,
    dead_letters: RedisDeadLetterSink,
) -> RevenueEventHandler:
    """Event handler wired to the test database, in-memory idempotency and fake Redis dead letters."""
    return RevenueEventHandler(repository_scope, idempotency_store, dead_letters)


@pytest.fixture
def fetch_revenue(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[date], Awaitable[Revenue | None]]:
    """Read a period's aggregate through a fresh session."""

    async def _fetch(period: date) -> Revenue | None:
        async with session_factory() as session:
            result = await session.execute(select(Revenue).where(Revenue.period == period))
            return result.scalar_one_or_none()

    return _fetch


@pytest_asyncio.fixture(scope="function")
async def test_client(
    session_factory: async_sessionmaker[AsyncSession],
    event_handler: RevenueEventHandler,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with dependency overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session
            await session.commit()

    def override_get_event_handler() -> RevenueEventHandler:
        return event_handler

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_handler] = override_get_event_handler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def invoice_payload(
    invoice_id: str = "inv-1",
    status: str = "paid",
    amount: int = 5000,
    invoice_date: str = "2025-03-15",
) -> dict[str, Any]:
    """Wire-format invoice snapshot."""
    return {"id": invoice_id, "status": status, "amount": amount, "date": invoice_date}


@pytest.fixture
def make_invoice() -> Callable[..., dict[str, Any]]:
    """Factory for wire-format invoice snapshots."""
    return invoice_payload
