"""
Pytest configuration and shared fixtures for testing.
Sets up a throwaway SQLite database, the test client and authenticated callers.
"""

import os
import tempfile

# Configure the app before any storefront imports
os.environ["SKIP_ENV_FILE"] = "1"
os.environ.setdefault("APP_ENV", "test")

# Enable metrics endpoint for testing
os.environ["ENABLE_METRICS"] = "true"

# Module-level engine target; each test swaps in its own database file
_default_db = os.path.join(tempfile.gettempdir(), "storefront_import.db")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{_default_db}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["BCRYPT_SALT_ROUNDS"] = "4"  # Minimum cost keeps hashing fast
os.environ["CACHE_ENABLED"] = "false"
os.environ["LOG_FILE"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from storefront.main import app
from storefront.db import Base
from storefront import db as app_db
from storefront import models  # noqa: F401  (registers tables on Base.metadata)


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """Create a fresh SQLite database for one test and route the app's sessions to it."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,  # Avoid connection pooling in tests
    )

    test_session_maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Override the session maker BEFORE creating tables
    original_session = app_db.async_session
    app_db.async_session = test_session_maker

    # Tests create tables directly; production uses Alembic migrations
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app_db.async_session = original_session
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(test_db_engine):
    """Create a test HTTP client with overridden database and a clean rate limiter."""
    app.state.rate_limiter.reset()
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0,
    ) as ac:
        yield ac
    app.state.rate_limiter.reset()


@pytest.fixture
def sample_user():
    """Sample registration payload."""
    return {
        "email": "test@example.com",
        "password": "Password123",
        "firstName": "Test",
        "lastName": "User",
    }


@pytest.fixture
def sample_product():
    """Sample product payload."""
    return {
        "name": "Wireless Mouse",
        "description": "Ergonomic 2.4GHz mouse",
        "price": 25.50,
        "stock": 40,
        "sku": "MOUSE-001",
        "category": "electronics",
        "status": "active",
    }


async def register(client: AsyncClient, email: str, role: str | None = None, password: str = "Password123") -> dict:
    """Register an account through the API and return the login response body."""
    payload = {
        "email": email,
        "password": password,
        "firstName": email.split("@")[0].capitalize(),
        "lastName": "Tester",
    }
    if role:
        payload["role"] = role
    response = await client.post("/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def bearer(login_body: dict) -> dict:
    return {"Authorization": f"Bearer {login_body['accessToken']}"}


@pytest_asyncio.fixture
async def user_auth(client):
    """Login response for a regular user."""
    return await register(client, "user@example.com")


@pytest_asyncio.fixture
async def admin_auth(client):
    """Login response for an admin."""
    return await register(client, "admin@example.com", role="admin")


@pytest_asyncio.fixture
async def moderator_auth(client):
    """Login response for a moderator."""
    return await register(client, "moderator@example.com", role="moderator")


@pytest.fixture
def user_headers(user_auth):
    return bearer(user_auth)


@pytest.fixture
def admin_headers(admin_auth):
    return bearer(admin_auth)


@pytest.fixture
def moderator_headers(moderator_auth):
    return bearer(moderator_auth)
