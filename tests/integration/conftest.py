"""Integration test fixtures for database and HTTP client operations.

Each test gets a fresh in-memory SQLite database (aiosqlite) with the full
schema, including the partial unique index on assigned applications.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from src.marketplace.api.dependencies.db import get_db_session
from src.marketplace.core.db import get_session
from src.marketplace.main import create_app
from src.marketplace.models import (  # noqa: F401
    Application,
    Dispute,
    Milestone,
    Project,
    TransitionLog,
    User,
)
from tests.helpers import RecordingNotifier, Services, build_services


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    """In-memory database shared by every session of one test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Session configured like the application's (no autoflush, no expiry on commit)."""
    async with get_session(engine) as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(db_session: AsyncSession, notifier: RecordingNotifier) -> Services:
    return build_services(db_session, notifier)


@pytest.fixture
async def client(engine: AsyncEngine) -> AsyncGenerator[AsyncClient]:
    """HTTP client against the app, bound to the test database."""
    app = create_app()

    async def _test_session() -> AsyncGenerator[AsyncSession]:
        async with get_session(engine) as session:
            yield session

    app.dependency_overrides[get_db_session] = _test_session

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client
