"""Pytest configuration and fixtures for FitSquad tests."""

import os

os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("ADMIN_PIN", "9999")
os.environ.setdefault("STRAVA_CLIENT_ID", "test_client_id")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "test_client_secret")
os.environ.setdefault("STRAVA_REDIRECT_URI", "https://example.com/strava/callback")
os.environ.setdefault("STRAVA_WEBHOOK_VERIFY_TOKEN", "test_verify_token")

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fitsquad.core.database import Base, get_db
from fitsquad.main import app as main_app
from fitsquad.models import Friend, StravaConnection
from fitsquad.observability import MetricsCollector
from fitsquad.services.strava_client import StravaClient
from tests.factories import FRIEND_PIN, create_friend

ADMIN_PIN = os.environ["ADMIN_PIN"]


# -------------------------------------------------------------------------
# Database Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def file_engine(tmp_path):
    """SQLite engine backed by a file, so each session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fitsquad.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(file_engine) -> async_sessionmaker[AsyncSession]:
    """Factory for independent sessions racing on the same database."""
    return async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def app(db_session: AsyncSession) -> FastAPI:
    """Create a FastAPI app instance with test database."""

    async def override_get_db():
        yield db_session

    main_app.dependency_overrides[get_db] = override_get_db
    yield main_app
    main_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


# -------------------------------------------------------------------------
# Friend Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def test_friend(db_session: AsyncSession) -> Friend:
    """Create a squad member."""
    return await create_friend(db_session, "Alex")


@pytest.fixture
async def other_friend(db_session: AsyncSession) -> Friend:
    return await create_friend(db_session, "Sam")


@pytest.fixture
def auth_headers(test_friend: Friend) -> dict[str, str]:
    """Headers authenticating as ``test_friend``."""
    return {"X-Friend-Id": str(test_friend.id), "X-Auth-Pin": FRIEND_PIN}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Headers authenticating with the global admin PIN."""
    return {"X-Auth-Pin": ADMIN_PIN}


# -------------------------------------------------------------------------
# Strava Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def strava_connection(db_session: AsyncSession, test_friend: Friend) -> StravaConnection:
    """A Strava connection whose token does not expire during tests."""
    connection = StravaConnection(
        friend_id=test_friend.id,
        athlete_id=555001,
        access_token="access_valid",
        refresh_token="refresh_valid",
        expires_at=4_102_444_800,  # 2100-01-01
        scope="read,activity:read_all",
    )
    db_session.add(connection)
    await db_session.commit()
    await db_session.refresh(connection)
    return connection


@pytest.fixture
def mock_strava_client() -> AsyncMock:
    """A StravaClient double; every API call is an AsyncMock."""
    client = AsyncMock(spec=StravaClient)
    client.list_activities.return_value = []
    return client

