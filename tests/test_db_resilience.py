"""
Tests for database connection resilience and retry logic.
"""

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import OperationalError
from storefront import db
from storefront.config import settings


@pytest.mark.asyncio
async def test_check_db_connection_healthy(test_db_engine):
    """Health check returns True against the test database."""
    assert await db.check_db_connection() is True


@pytest.mark.asyncio
async def test_check_db_connection_reports_failure():
    """Exhausted retries surface as False, not an exception."""
    failing = AsyncMock(side_effect=OperationalError("connection refused", None, None))
    with patch("storefront.db.retry_on_db_error", failing):
        assert await db.check_db_connection() is False


@pytest.mark.asyncio
async def test_retry_on_db_error_success():
    call_count = 0

    async def successful_func():
        nonlocal call_count
        call_count += 1
        return "success"

    assert await db.retry_on_db_error(successful_func) == "success"
    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_on_db_error_retries_on_connection_error():
    call_count = 0

    async def failing_then_success():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise OperationalError("connection reset by peer", None, None)
        return "success"

    result = await db.retry_on_db_error(failing_then_success, max_retries=3, base_delay=0.01)
    assert result == "success"
    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_on_db_error_retries_locked_sqlite():
    call_count = 0

    async def locked_once():
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            raise OperationalError("database is locked", None, None)
        return "ok"

    assert await db.retry_on_db_error(locked_once, base_delay=0.01) == "ok"


@pytest.mark.asyncio
async def test_retry_on_db_error_fails_after_max_retries():
    call_count = 0

    async def always_failing():
        nonlocal call_count
        call_count += 1
        raise OperationalError("connection timeout", None, None)

    with pytest.raises(OperationalError):
        await db.retry_on_db_error(always_failing, max_retries=2, base_delay=0.01)

    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_on_db_error_no_retry_on_constraint_violation():
    """Non-connection errors fail on the first attempt."""
    call_count = 0

    async def constraint_error():
        nonlocal call_count
        call_count += 1
        raise OperationalError("unique constraint violated", None, None)

    with pytest.raises(OperationalError):
        await db.retry_on_db_error(constraint_error, max_retries=3, base_delay=0.01)

    assert call_count == 1


@pytest.mark.asyncio
async def test_health_endpoint_503_when_database_down(client):
    with patch("storefront.db.check_db_connection", new_callable=AsyncMock, return_value=False):
        response = await client.get("/health")

    assert response.status_code == 503
    body = response.json()
    assert body["statusCode"] == 503
    assert body["error"]["database"] == "disconnected"


@pytest.mark.asyncio
async def test_health_endpoint_degraded_when_cache_down(client, monkeypatch):
    monkeypatch.setattr(settings, "CACHE_ENABLED", True)
    with patch("storefront.routes.cache_manager.health_check", new_callable=AsyncMock, return_value=False):
        response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["database"] == "connected"
    assert body["cache"] == "disconnected"
