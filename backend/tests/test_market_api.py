"""
HTTP-level tests for the market API using FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from backend.market.config import Settings
from backend.market_api import create_app

ROUTES = [
    "/api/bitcoin",
    "/api/ethereum",
    "/api/btc-dominance",
    "/api/eth-btc",
    "/api/currencies",
    "/api/indices",
]


@pytest.fixture
def live_fetcher(
    stub_fetcher,
    coingecko_bitcoin_response,
    coingecko_global_response,
    coingecko_simple_price_response,
    frankfurter_response,
):
    stub_fetcher.routes = {
        "/coins/bitcoin": coingecko_bitcoin_response,
        "/coins/ethereum": dict(coingecko_bitcoin_response, symbol="eth", name="Ethereum"),
        "/global": coingecko_global_response,
        "/simple/price": coingecko_simple_price_response,
        "/latest": frankfurter_response,
    }
    return stub_fetcher


@pytest.fixture
def client(orchestrator):
    settings = Settings()
    app = create_app(settings, orchestrator=orchestrator, configure_logging=False, serve_static=False)
    with TestClient(app) as c:
        yield c


class TestMetricRoutes:

    @pytest.mark.unit
    @pytest.mark.parametrize("route", ROUTES)
    def test_live_response_shape(self, client, live_fetcher, route):
        r = client.get(route)
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["cached"] is False
        assert "error" not in body
        assert body["timestamp"].endswith("Z")
        assert body["data"]

    @pytest.mark.unit
    # indices has no upstream to fail
    @pytest.mark.parametrize("route", ROUTES[:-1])
    def test_degraded_response_still_succeeds(self, client, stub_fetcher, route):
        stub_fetcher.fail_everything()
        r = client.get(route)
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["cached"] is True
        assert body["error"] == "Using cached data due to API limits"

    @pytest.mark.unit
    def test_second_request_is_cached(self, client, live_fetcher):
        first = client.get("/api/bitcoin").json()
        second = client.get("/api/bitcoin").json()
        assert second["cached"] is True
        assert second["data"] == first["data"]
        assert len(live_fetcher.calls) == 1

    @pytest.mark.unit
    def test_bitcoin_payload_fields(self, client, live_fetcher):
        data = client.get("/api/bitcoin").json()["data"]
        assert data == {
            "price": 43250.5,
            "change_24h": 3.2,
            "market_cap": 845000000000,
            "volume": 25000000000,
            "high_24h": 44000,
            "low_24h": 42000,
            "name": "Bitcoin",
            "symbol": "BTC",
        }

    @pytest.mark.unit
    def test_currencies_payload(self, client, live_fetcher):
        data = client.get("/api/currencies").json()["data"]
        assert data == {"rates": {"RUB": 101.2, "EUR": 0.95, "CNY": 7.3}}

    @pytest.mark.unit
    def test_generic_metric_route(self, client, live_fetcher):
        r = client.get("/api/metric/eth_btc")
        assert r.status_code == 200
        assert r.json()["data"]["eth_btc"] == pytest.approx(0.05)

    @pytest.mark.unit
    def test_unknown_metric_is_404(self, client):
        r = client.get("/api/metric/dogecoin")
        assert r.status_code == 404


class TestOperationalRoutes:

    @pytest.mark.unit
    @pytest.mark.parametrize("method", ["get", "post"])
    def test_clear_cache(self, client, live_fetcher, method):
        client.get("/api/btc-dominance")
        r = getattr(client, method)("/api/clear-cache")
        assert r.status_code == 200
        assert r.json() == {"success": True, "message": "Cache cleared"}

        again = client.get("/api/btc-dominance").json()
        assert again["cached"] is False
        assert len(live_fetcher.calls) == 2

    @pytest.mark.unit
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "OK"
        assert body["environment"] == "development"
        assert body["cache_age_ms"] is None
        assert body["timestamp"].endswith("Z")

    @pytest.mark.unit
    def test_health_after_write(self, client, clock):
        client.get("/api/indices")
        clock.advance(2)
        assert client.get("/api/health").json()["cache_age_ms"] == 2000

    @pytest.mark.unit
    def test_metrics_json(self, client, live_fetcher):
        client.get("/api/bitcoin")
        client.get("/api/bitcoin")
        body = client.get("/api/metrics").json()
        assert body["status"] == "ok"
        assert body["cache"]["entries"] == 1
        assert body["cache"]["freshness_seconds"] == 60
        assert body["resolutions"]["bitcoin"]["served_cached"] == 1

    @pytest.mark.unit
    def test_prometheus_text(self, client, live_fetcher):
        client.get("/api/ethereum")
        r = client.get("/metrics")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/plain")
        assert "# TYPE market_fetch_total_calls_total counter" in r.text
        assert 'market_resolve_served_fresh_total{metric="ethereum"} 1' in r.text
        assert "market_cache_entries 1" in r.text

    @pytest.mark.unit
    def test_request_id_echoed(self, client):
        r = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
        assert r.headers["X-Request-ID"] == "abc-123"
        assert client.get("/api/health").headers["X-Request-ID"]

    @pytest.mark.unit
    def test_cors_headers(self, client):
        r = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert r.headers["access-control-allow-origin"] == "*"


def test_shutdown_closes_fetcher(orchestrator, stub_fetcher):
    app = create_app(Settings(), orchestrator=orchestrator, configure_logging=False, serve_static=False)
    with TestClient(app):
        pass
    assert stub_fetcher.closed is True
