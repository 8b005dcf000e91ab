import pytest
from loguru import logger

from app.core.config import settings


@pytest.mark.anyio
async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == settings.APP_NAME
    assert body["timestamp"]


@pytest.mark.anyio
async def test_readyz(client):
    response = await client.get("/api/readyz")
    assert response.status_code == 200
    assert response.json() == {"ready": True}


@pytest.mark.anyio
async def test_request_id_propagates(client):
    response = await client.get("/api/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    generated = await client.get("/api/health")
    assert generated.headers["X-Request-ID"]


@pytest.mark.anyio
async def test_oversized_body_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_REQUEST_BYTES", 10)
    response = await client.post(
        "/api/auth/login", json={"email": "a" * 50 + "@portfolio.com", "password": "x"}
    )
    assert response.status_code == 413


@pytest.mark.anyio
async def test_access_log_uses_route_template(client):
    records = []
    sink_id = logger.add(lambda message: records.append(message.record), level="INFO")
    try:
        await client.get(
            "/api/projects/slug/missing-slug", headers={"X-Forwarded-For": "203.0.113.9"}
        )
    finally:
        logger.remove(sink_id)

    completed = [r for r in records if r["message"] == "request_completed"]
    assert len(completed) == 1
    extra = completed[0]["extra"]
    assert extra["route"] == "/api/projects/slug/{slug}"
    assert extra["path"] == "/api/projects/slug/missing-slug"
    assert extra["client"] == "203.0.113.9"
    assert extra["status"] == 404
