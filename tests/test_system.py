from __future__ import annotations

import pytest
from httpx import AsyncClient

from agrivision import main
from agrivision.middleware.logging import route_area


@pytest.mark.asyncio
async def test_root_reports_running(client: AsyncClient) -> None:
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "AgriVision API is running"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["service"] == "agrivision"


@pytest.mark.asyncio
async def test_health_ready_ok(client: AsyncClient) -> None:
    response = await client.get("/health/ready")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["checks"]["redis"]["ok"] is True
    assert body["checks"]["firestore"]["ok"] is True


@pytest.mark.asyncio
async def test_health_ready_degraded_when_redis_down(client: AsyncClient, fake_redis) -> None:
    fake_redis.healthy = False

    response = await client.get("/health/ready")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "degraded"
    assert body["checks"]["redis"] == {"ok": False, "message": "redis down"}


@pytest.mark.asyncio
async def test_health_ready_degraded(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def _bad(_app):
        return {
            "redis": {"ok": True, "message": "ok"},
            "firestore": {"ok": False, "message": "not configured"},
        }

    monkeypatch.setattr(main, "_run_readiness_checks", _bad)

    response = await client.get("/health/ready")
    assert response.status_code == 503
    assert response.json()["checks"]["firestore"]["ok"] is False


@pytest.mark.asyncio
async def test_request_id_is_propagated(client: AsyncClient) -> None:
    request_id = "field-sync-request-id"
    response = await client.get("/health", headers={"x-request-id": request_id})
    assert response.status_code == 200
    assert response.headers.get("x-request-id") == request_id


@pytest.mark.asyncio
async def test_request_id_generated_when_missing(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    generated = response.headers.get("x-request-id")
    assert generated is not None
    assert len(generated) >= 8


@pytest.mark.asyncio
async def test_oversized_request_id_is_truncated(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"x-request-id": "r" * 500})
    assert response.headers.get("x-request-id") == "r" * 128


@pytest.mark.parametrize(
    ("path", "area"),
    [
        ("/api/analyze-ndvi", "vegetation"),
        ("/api/disease/predict", "disease_model"),
        ("/api/ai/alert-descriptions", "gemini"),
        ("/api/alerts/field-1/refresh", "alerts"),
        ("/field/process-region", "fields"),
        ("/api/user/profile", "fields"),
        ("/health/ready", "system"),
    ],
)
def test_route_area_tags(path: str, area: str) -> None:
    assert route_area(path) == area


@pytest.mark.asyncio
async def test_unknown_route_uses_error_shape(client: AsyncClient) -> None:
    response = await client.get("/api/unknown")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


@pytest.mark.asyncio
async def test_missing_http_client_is_reported(client: AsyncClient) -> None:
    main.app.state.http_client = None
    response = await client.post("/api/ai/generate", json={"message": "hello"})
    assert response.status_code == 503
    assert response.json() == {"error": "HTTP client is not initialised"}
