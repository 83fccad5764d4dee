"""
Shared pytest fixtures for the market cache tests.
"""

import json
import random

import pytest

from backend.market.cache import MetricCacheStore
from backend.market.fetcher import FetchError, RetryingFetcher
from backend.market.orchestrator import ResolutionOrchestrator
from backend.market.resolvers import default_resolvers


# ============================================================================
# Upstream payload fixtures
# ============================================================================

@pytest.fixture
def coingecko_bitcoin_response():
    """Trimmed CoinGecko /coins/bitcoin response."""
    return {
        "id": "bitcoin",
        "symbol": "btc",
        "name": "Bitcoin",
        "market_data": {
            "current_price": {"usd": 43250.50},
            "price_change_percentage_24h": 3.2,
            "market_cap": {"usd": 845000000000},
            "total_volume": {"usd": 25000000000},
            "high_24h": {"usd": 44000},
            "low_24h": {"usd": 42000},
        },
    }


@pytest.fixture
def coingecko_global_response():
    return {
        "data": {
            "market_cap_percentage": {"btc": 52.4, "eth": 16.9},
            "total_market_cap": {"usd": 2400000000000},
            "total_volume": {"usd": 95000000000},
        }
    }


@pytest.fixture
def coingecko_simple_price_response():
    return {"bitcoin": {"usd": 50000}, "ethereum": {"usd": 2500}}


@pytest.fixture
def frankfurter_response():
    return {"amount": 1.0, "base": "USD", "date": "2025-01-02", "rates": {"EUR": 0.95, "RUB": 101.2, "CNY": 7.3}}


# ============================================================================
# Fake aiohttp session
# ============================================================================

class FakeResponse:
    def __init__(self, status=200, payload=None, body=None):
        self.status = status
        self._payload = payload
        self._body = body

    async def json(self, content_type="application/json"):
        if self._body is not None:
            return json.loads(self._body)
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Replays queued responses (or raises queued exceptions) for ``get``."""

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.requested = []
        self.closed = False

    def get(self, url, **kwargs):
        self.requested.append(url)
        if not self.responses:
            raise AssertionError(f"unexpected request to {url}")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_session_factory():
    return FakeSession


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def recorded_sleeps():
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps):
    async def _sleep(seconds):
        recorded_sleeps.append(seconds)
    return _sleep


# ============================================================================
# Clock and fetcher fakes
# ============================================================================

class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class StubFetcher:
    """Stands in for RetryingFetcher: maps URL substrings to payloads or errors."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.closed = False

    async def fetch_json(self, url, max_attempts=None, base_delay_ms=None):
        self.calls.append(url)
        for fragment, outcome in self.routes.items():
            if fragment in url:
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
        raise FetchError(f"HTTP error: 503 ({url})")

    def fail_everything(self, exc=None):
        self.routes = {"": exc or FetchError("HTTP error: 503")}

    def metrics(self):
        return {"total_calls": len(self.calls)}

    async def close(self):
        self.closed = True


@pytest.fixture
def stub_fetcher():
    return StubFetcher()


@pytest.fixture
def store(clock):
    return MetricCacheStore(freshness_seconds=60, clock=clock)


@pytest.fixture
def orchestrator(store, stub_fetcher):
    resolvers = default_resolvers(rng=random.Random(7))
    return ResolutionOrchestrator(store, stub_fetcher, resolvers)


@pytest.fixture
def retrying_fetcher(fake_sleep):
    def _build(responses, **kwargs):
        session = FakeSession(responses)
        fetcher = RetryingFetcher(session, sleep=fake_sleep, **kwargs)
        return fetcher, session
    return _build


