"""Tests for GET /health, GET /metrics and the root endpoint."""
import pytest
from httpx import AsyncClient

from app.config import Settings, get_settings
from app.database import get_db
from app.main import app


class _BrokenSession:
    """Session stand-in whose every query fails."""

    async def execute(self, *args, **kwargs):
        raise ConnectionError("connection refused")

    async def rollback(self):
        pass


async def _broken_db():
    yield _BrokenSession()


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["services"]["database"] == "connected"
    assert data["services"]["openai"] == "configured"
    assert data["services"]["database_url"] == "configured"
    assert data["environment"]["model"] == "gpt-4o-mini"
    assert data["responseTime"].endswith("ms")
    assert "error" not in data


@pytest.mark.asyncio
async def test_health_reports_missing_key(client: AsyncClient, test_settings):
    test_settings.OPENAI_API_KEY = ""
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["services"]["openai"] == "missing"


@pytest.mark.asyncio
async def test_health_reports_default_database_url_as_missing(client: AsyncClient, monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    defaults = Settings(_env_file=None, OPENAI_API_KEY="test-key")
    app.dependency_overrides[get_settings] = lambda: defaults

    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["services"]["database_url"] == "missing"


@pytest.mark.asyncio
async def test_health_returns_503_when_database_down(client: AsyncClient):
    app.dependency_overrides[get_db] = _broken_db
    resp = await client.get("/health")
    assert resp.status_code == 503
    data = resp.json()
    assert data["status"] == "unhealthy"
    assert data["services"]["database"] == "disconnected"
    assert "connection refused" in data["error"]


@pytest.mark.asyncio
async def test_metrics_snapshot(client: AsyncClient):
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    data = resp.json()
    assert data["memory"]["rss"].endswith("MB")
    assert data["database"]["status"] == "connected"
    assert data["circuitBreaker"] == {"open": False, "retryIn": 0.0}
    assert data["environment"]["python"]


@pytest.mark.asyncio
async def test_metrics_shows_open_breaker(client: AsyncClient):
    async def failing():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await app.state.circuit_breaker.call(failing)

    resp = await client.get("/metrics")
    breaker = resp.json()["circuitBreaker"]
    assert breaker["open"] is True
    assert breaker["retryIn"] > 0


@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Scripture Counsel API"
