"""Smoke tests for health and app wiring."""

from httpx import AsyncClient

from donorflow.main import app


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json().get("status") == "ok"


async def test_ready_reports_wired_services(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "task_store": True,
        "signing_provider": True,
        "artifact_storage": True,
    }


async def test_ready_is_degraded_without_task_store(client: AsyncClient) -> None:
    """Missing task store answers 503 so the instance is taken out of rotation."""
    app.state.task_repo = None
    response = await client.get("/api/v1/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "degraded"


async def test_request_and_correlation_ids_are_echoed(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Correlation-ID"] == "req-123"
