import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from slowapi import Limiter

from app.core.rate_limit import RATE_LIMIT_MESSAGE, client_ip, init_rate_limiter


def _build_app() -> FastAPI:
    app = FastAPI()
    init_rate_limiter(
        app,
        Limiter(
            key_func=client_ip,
            default_limits=["2/minute"],
            storage_uri="memory://",
            headers_enabled=True,
        ),
    )

    @app.get("/ping")
    async def ping():
        return {"pong": True}

    return app


@pytest.mark.anyio
async def test_default_limit_returns_429():
    transport = ASGITransport(app=_build_app())
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        first = await client.get("/ping")
        assert first.status_code == 200
        assert first.headers["X-RateLimit-Limit"] == "2"
        assert (await client.get("/ping")).status_code == 200

        blocked = await client.get("/ping")
        assert blocked.status_code == 429
        assert blocked.json()["detail"] == RATE_LIMIT_MESSAGE


@pytest.mark.anyio
async def test_limit_is_per_forwarded_client():
    transport = ASGITransport(app=_build_app())
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        for _ in range(2):
            await client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1"})
        assert (
            await client.get("/ping", headers={"X-Forwarded-For": "10.0.0.1"})
        ).status_code == 429
        assert (
            await client.get("/ping", headers={"X-Forwarded-For": "10.0.0.2, 10.0.0.9"})
        ).status_code == 200


class _Req:
    def __init__(self, headers, host="127.0.0.1"):
        self.headers = headers
        self.client = type("Client", (), {"host": host})()


def test_client_ip_precedence():
    assert client_ip(_Req({"x-forwarded-for": "1.1.1.1, 2.2.2.2", "x-real-ip": "3.3.3.3"})) == "1.1.1.1"
    assert client_ip(_Req({"x-real-ip": "3.3.3.3"})) == "3.3.3.3"
    assert client_ip(_Req({})) == "127.0.0.1"
