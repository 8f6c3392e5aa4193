"""
Tests for the proxy HTTP surface (FastAPI TestClient)
"""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api_server import app, limiter
from src.core.exceptions import RateLimited, ServiceUnavailable, UpstreamError
from src.services.coingecko_service import (
    CoinGeckoClient,
    CoinGeckoService,
    get_coingecko_service,
)


MARKETS_PAYLOAD = [{"id": "bitcoin", "symbol": "btc", "current_price": 50000}]


@pytest.fixture
def upstream():
    return AsyncMock(return_value=MARKETS_PAYLOAD)


@pytest.fixture
def service(upstream, clock):
    return CoinGeckoService(client=CoinGeckoClient(fetcher=upstream, api_key=""), clock=clock)


@pytest.fixture
def client(service):
    limiter.reset()
    app.dependency_overrides[get_coingecko_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    limiter.reset()


# =============================================================================
# HEALTH / ROOT
# =============================================================================

def test_health(client):
    for path in ("/api/health", "/health"):
        response = client.get(path)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "CryptoTracker Backend API"
        assert data["timestamp"].endswith("Z")


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_security_headers(client):
    response = client.get("/api/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


# =============================================================================
# MARKET DATA
# =============================================================================

def test_markets_passthrough_and_cache(client, upstream):
    first = client.get("/api/coingecko/markets")
    second = client.get("/api/coingecko/markets", params={"vs_currency": "usd", "per_page": 50})

    assert first.status_code == 200
    assert first.json() == MARKETS_PAYLOAD
    assert second.json() == MARKETS_PAYLOAD
    assert upstream.await_count == 1

    url = upstream.await_args.args[0]
    assert url == "https://api.coingecko.com/api/v3/coins/markets"


def test_chart_twice_reaches_upstream_once(client, upstream, clock):
    upstream.return_value = {"prices": [[1700000000000, 50000.0]]}

    first = client.get("/api/coingecko/coins/bitcoin/market_chart", params={"days": "7"})
    clock.advance(200)
    second = client.get("/api/coingecko/coins/bitcoin/market_chart", params={"days": "7"})

    assert first.status_code == second.status_code == 200
    assert second.json() == {"prices": [[1700000000000, 50000.0]]}
    assert upstream.await_count == 1


def test_coin_detail(client, upstream):
    upstream.return_value = {"id": "bitcoin", "name": "Bitcoin"}

    response = client.get("/api/coingecko/coins/bitcoin")

    assert response.status_code == 200
    assert response.json()["name"] == "Bitcoin"
    assert upstream.await_args.args[0].endswith("/coins/bitcoin")


@pytest.mark.parametrize(
    "error, status, message",
    [
        (RateLimited(), 429, "Rate limit exceeded"),
        (UpstreamError(404, "coin not found"), 404, "coin not found"),
        (ServiceUnavailable(), 503, "CoinGecko API is unavailable"),
    ],
)
def test_upstream_errors_mapped(client, upstream, error, status, message):
    upstream.side_effect = error

    response = client.get("/api/coingecko/coins/nonexistent")

    assert response.status_code == status
    assert response.json() == {"error": message}


def test_unexpected_upstream_error_is_500(client, upstream):
    upstream.side_effect = RuntimeError("boom")

    response = client.get("/api/coingecko/coins/bitcoin")

    assert response.status_code == 500
    assert "error" in response.json()


@pytest.mark.parametrize(
    "path, params",
    [
        ("/api/coingecko/markets", {"per_page": 0}),
        ("/api/coingecko/markets", {"per_page": 1000}),
        ("/api/coingecko/markets", {"page": "abc"}),
        ("/api/coingecko/coins/bitcoin/market_chart", {"days": "forever"}),
    ],
)
def test_invalid_parameters_are_400(client, upstream, path, params):
    response = client.get(path, params=params)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request parameters")
    assert upstream.await_count == 0


def test_unknown_route(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Route not found"}


# =============================================================================
# CACHE ADMIN
# =============================================================================

def test_cache_stats_and_clear(client, upstream):
    client.get("/api/coingecko/markets")
    client.get("/api/coingecko/markets")

    stats = client.get("/api/coingecko/cache/stats").json()
    assert stats["markets"]["keys"] == 1
    assert stats["markets"]["stats"]["hits"] == 1
    assert stats["markets"]["stats"]["misses"] == 1
    assert stats["coin"]["keys"] == 0

    response = client.delete("/api/coingecko/cache/clear")
    assert response.status_code == 200
    assert response.json()["message"] == "All caches cleared"
    assert response.json()["removed"]["markets"] == 1

    stats = client.get("/api/coingecko/cache/stats").json()
    assert stats["markets"]["keys"] == 0
    # Counters survive a clear
    assert stats["markets"]["stats"]["hits"] == 1

    client.get("/api/coingecko/markets")
    assert upstream.await_count == 2


# =============================================================================
# CORS
# =============================================================================

def test_allowed_origin_gets_cors_headers(client):
    response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert response.headers["access-control-allow-credentials"] == "true"


def test_frontend_url_allowed(client):
    response = client.get("/api/health", headers={"Origin": "https://cryptotracker.example.com"})

    assert response.status_code == 200


def test_vercel_preview_allowed(client):
    origin = "https://cryptotracker-git-feature-team.vercel.app"

    response = client.get("/api/health", headers={"Origin": origin})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == origin


def test_disallowed_origin_rejected(client, upstream):
    response = client.get("/api/coingecko/markets", headers={"Origin": "https://evil.example"})

    assert response.status_code == 403
    assert response.json() == {"error": "Not allowed by CORS"}
    assert "access-control-allow-origin" not in response.headers
    assert upstream.await_count == 0


def test_request_without_origin_allowed(client):
    assert client.get("/api/health").status_code == 200


def test_preflight_from_allowed_origin(client):
    response = client.options(
        "/api/coingecko/markets",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


# =============================================================================
# RATE LIMIT
# =============================================================================

def test_rate_limit_per_client(client):
    for _ in range(100):
        assert client.get("/api/health").status_code == 200

    response = client.get("/api/health")

    assert response.status_code == 429
    assert response.json() == {"error": "Too many requests from this IP, please try again later."}


def test_root_and_health_outside_rate_limit(client):
    for _ in range(100):
        client.get("/api/health")

    assert client.get("/api/health").status_code == 429
    assert client.get("/health").status_code == 200
    assert client.get("/").status_code == 200
