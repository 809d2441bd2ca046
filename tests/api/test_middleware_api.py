"""Middleware tests: request ID, rate limiting, CORS, error handling."""

import pytest
from httpx import AsyncClient

from folies import redis_client


class _FakePipeline:
    def __init__(self, store: dict[str, int]) -> None:
        self._store = store
        self._ops: list[str] = []

    def incr(self, key: str) -> None:
        self._ops.append(key)

    def expire(self, _key: str, _seconds: int) -> None:
        pass

    async def execute(self) -> list[object]:
        results: list[object] = []
        for key in self._ops:
            self._store[key] = self._store.get(key, 0) + 1
            results.extend([self._store[key], True])
        return results


class _FakeRedis:
    """Counts rate-limit hits in memory."""

    def __init__(self) -> None:
        self.store: dict[str, int] = {}

    def pipeline(self) -> _FakePipeline:
        return _FakePipeline(self.store)


@pytest.fixture
def fake_redis(monkeypatch):
    fake = _FakeRedis()
    monkeypatch.setattr(redis_client, "_pool", fake)
    return fake


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_no_rate_limit_without_redis(client: AsyncClient) -> None:
    """Requests pass unthrottled while Redis is not initialized."""
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient, fake_redis) -> None:
    """Rate limit headers are present on non-exempt endpoints."""
    response = await client.get("/api/v1/badges")
    assert response.status_code == 200
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "99"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, fake_redis) -> None:
    """101st request returns 429 with Retry-After header."""
    for _ in range(100):
        await client.get("/api/v1/badges")
    response = await client.get("/api/v1/badges")
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_clients_counted_separately(client: AsyncClient, fake_redis) -> None:
    """X-Forwarded-For identifies the client behind the proxy."""
    for _ in range(100):
        await client.get("/api/v1/badges", headers={"X-Forwarded-For": "10.0.0.1"})
    blocked = await client.get("/api/v1/badges", headers={"X-Forwarded-For": "10.0.0.1"})
    assert blocked.status_code == 429

    response = await client.get("/api/v1/badges", headers={"X-Forwarded-For": "10.0.0.2, 172.16.0.1"})
    assert response.status_code == 200
    assert response.headers["x-ratelimit-remaining"] == "99"


@pytest.mark.asyncio
async def test_version_exempt_from_rate_limit(client: AsyncClient, fake_redis) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers
    assert fake_redis.store == {}


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, fake_redis) -> None:
    """Health endpoint is exempt from rate limiting."""
    for _ in range(150):
        response = await client.get("/health")
        assert response.status_code == 200
    assert fake_redis.store == {}


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for a configured origin."""
    response = await client.options(
        "/api/v1/badges",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_cors_rejects_unknown_origin(client: AsyncClient) -> None:
    response = await client.options(
        "/api/v1/badges",
        headers={
            "Origin": "https://evil.example",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert "access-control-allow-origin" not in response.headers


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json()["detail"] == "Not Found"
    assert response.headers["content-type"] == "application/json"
