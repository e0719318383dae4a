"""
Pytest configuration and shared fixtures for testing.
Sets up a throwaway SQLite database (aiosqlite) and an HTTP test client.
"""

import os
import tempfile

# Set TEST_MODE before any app imports to disable rate limiting
os.environ["TEST_MODE"] = "1"

# Enable metrics endpoint for testing
os.environ["ENABLE_METRICS"] = "true"

TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f"taskflow_test_{os.getpid()}.db")
TEST_DB_URL = f"sqlite+aiosqlite:///{TEST_DB_PATH}"

# App config must see the test environment before app modules are imported
os.environ["SKIP_ENV_FILE"] = "1"
os.environ["APP_ENV"] = "test"
os.environ["DB_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["CACHE_ENABLED"] = "false"
os.environ["LOG_FILE"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from taskflow.main import app
from taskflow.db import Base
from taskflow import db as app_db
from taskflow.config import settings

API = settings.API_PREFIX


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """Fresh schema per test; the app's session factory is pointed at it."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=NullPool)

    test_session_maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    original_session = app_db.async_session
    app_db.async_session = test_session_maker

    # Tests create tables directly; production uses Alembic migrations
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app_db.async_session = original_session
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(test_db_engine):
    """HTTP client bound to the ASGI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0,
    ) as ac:
        yield ac


@pytest.fixture
def sample_user():
    """Sample registration payload."""
    return {
        "name": "Test User",
        "email": "test@example.com",
        "password": "Password123"
    }


@pytest.fixture
def other_user():
    return {
        "name": "Other Person",
        "email": "other@example.com",
        "password": "Password456"
    }


async def register(client: AsyncClient, payload: dict) -> tuple[str, dict]:
    """Register a user through the API; returns (token, user)."""
    response = await client.post(f"{API}/auth/register", json=payload)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["token"], data["user"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def auth_headers(client, sample_user):
    """Authorization headers for a freshly registered sample user."""
    token, _ = await register(client, sample_user)
    return bearer(token)


@pytest_asyncio.fixture
async def other_headers(client, other_user):
    token, _ = await register(client, other_user)
    return bearer(token)
