"""Health endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health endpoint should return liveness, version, and broker URL."""
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["broker_url"] == "http://broker.test"
    assert "version" in data
    assert "time" in data


@pytest.mark.asyncio
async def test_unknown_route_uses_error_shape(client):
    resp = await client.get("/api/nope")
    assert resp.status_code == 404
    assert "error" in resp.json()
