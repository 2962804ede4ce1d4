"""
Tests for Prometheus metrics endpoint.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_metrics_endpoint_exists(client: AsyncClient):
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_metrics_use_storefront_namespace(client: AsyncClient):
    await client.get("/")

    content = (await client.get("/metrics")).text

    assert "# TYPE" in content
    assert "storefront_http_requests_total" in content


@pytest.mark.asyncio
async def test_metrics_record_route_templates(client: AsyncClient):
    """Parameterized paths are grouped under their template, not the raw URL."""
    await client.get("/products/12345")

    content = (await client.get("/metrics")).text

    assert 'handler="/products/{product_id}"' in content
    assert 'handler="/products/12345"' not in content


@pytest.mark.asyncio
async def test_probes_are_not_tracked(client: AsyncClient):
    await client.get("/health")
    await client.get("/metrics")

    content = (await client.get("/metrics")).text

    assert 'handler="/health"' not in content
    assert 'handler="/metrics"' not in content
