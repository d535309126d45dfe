import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Test basic health check."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"


@pytest.mark.asyncio
async def test_health_ready(client: AsyncClient):
    """Test readiness check with database connection."""
    response = await client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["database"] == "connected"


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    """Every response carries an X-Request-ID; well-formed client ids are kept."""
    generated = await client.get("/health")
    assert generated.headers["X-Request-ID"]

    echoed = await client.get("/health", headers={"X-Request-ID": "retry-abc-123"})
    assert echoed.headers["X-Request-ID"] == "retry-abc-123"

    replaced = await client.get("/health", headers={"X-Request-ID": "bad id with spaces"})
    assert replaced.headers["X-Request-ID"] != "bad id with spaces"


@pytest.mark.asyncio
async def test_health_metrics(client: AsyncClient):
    """Test metrics snapshot counts finished requests by status class."""
    await client.get("/health")
    await client.get("/api/v1/sync/jobs/not-a-uuid")

    response = await client.get("/health/metrics")
    assert response.status_code == 200
    data = response.json()
    assert data["requests_total"] == 2
    assert data["requests_by_status_class"]["2xx"] == 1
    assert data["requests_by_status_class"]["4xx"] == 1
    assert data["request_duration_ms_max"] >= data["request_duration_ms_avg"] >= 0
    assert data["counters"] == {}
