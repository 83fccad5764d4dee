"""Retrying JSON fetcher for the upstream market-data APIs.

Backoff is arithmetic: attempt ``i`` waits ``i * base_delay_ms`` before it
starts, so the defaults give ``[0, 1000, 2000]`` ms. Waits go through
``asyncio.sleep`` and never block other requests on the event loop.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1000
RATE_LIMIT_STATUS = 429


class FetchError(RuntimeError):
    """Raised when a URL could not be fetched within the attempt budget."""


class TransientUpstreamError(FetchError):
    """Network failure, bad status or unreadable body from an upstream API."""


class UpstreamHTTPError(TransientUpstreamError):
    def __init__(self, status: int, url: str = ""):
        super().__init__(f"HTTP error: {status}")
        self.status = status
        self.url = url


class RateLimitedError(UpstreamHTTPError):
    def __init__(self, url: str = ""):
        super().__init__(RATE_LIMIT_STATUS, url)


def backoff_delays(max_attempts: int = DEFAULT_MAX_ATTEMPTS, base_delay_ms: int = DEFAULT_BASE_DELAY_MS) -> List[int]:
    """Delay in ms applied before each attempt."""
    return [i * base_delay_ms for i in range(max_attempts)]


class RetryingFetcher:
    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._metrics_lock = threading.Lock()
        self._metrics: Dict[str, Any] = {
            "total_calls": 0,
            "attempts": 0,
            "successes": 0,
            "failures": 0,
            "rate_limit_hits": 0,
            "errors": 0,
            "last_fetch_duration_ms": None,
            "last_success_time": None,
        }

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            kwargs: Dict[str, Any] = {}
            if self.timeout_seconds is not None:
                kwargs["timeout"] = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(**kwargs)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _count(self, key: str, n: int = 1) -> None:
        with self._metrics_lock:
            self._metrics[key] += n

    async def _attempt(self, url: str) -> Any:
        session = self._get_session()
        try:
            async with session.get(url) as resp:
                if resp.status == RATE_LIMIT_STATUS:
                    raise RateLimitedError(url)
                if not 200 <= resp.status < 300:
                    raise UpstreamHTTPError(resp.status, url)
                return await resp.json(content_type=None)
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransientUpstreamError(f"{type(exc).__name__}: {exc}") from exc

    async def fetch_json(
        self,
        url: str,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
    ) -> Any:
        attempts = self.max_attempts if max_attempts is None else max_attempts
        base = self.base_delay_ms if base_delay_ms is None else base_delay_ms
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._count("total_calls")
        start = time.monotonic()
        last_error: Optional[FetchError] = None
        for i, delay_ms in enumerate(backoff_delays(attempts, base)):
            if delay_ms > 0:
                await self._sleep(delay_ms / 1000.0)
            self._count("attempts")
            try:
                data = await self._attempt(url)
            except RateLimitedError as exc:
                last_error = exc
                self._count("rate_limit_hits")
                logger.info("Rate limit hit for %s (attempt %d/%d)", url, i + 1, attempts)
                continue
            except FetchError as exc:
                last_error = exc
                self._count("errors")
                logger.info("Attempt %d failed for %s: %s", i + 1, url, exc)
                continue
            with self._metrics_lock:
                self._metrics["successes"] += 1
                self._metrics["last_fetch_duration_ms"] = round((time.monotonic() - start) * 1000.0, 3)
                self._metrics["last_success_time"] = time.time()
            return data

        self._count("failures")
        logger.warning(
            "fetcher.exhausted",
            extra={"event": "fetch_exhausted", "url": url, "attempts": attempts, "error": str(last_error)},
        )
        raise last_error

    def metrics(self) -> Dict[str, Any]:
        with self._metrics_lock:
            return dict(self._metrics)


__all__ = [
    "FetchError",
    "TransientUpstreamError",
    "UpstreamHTTPError",
    "RateLimitedError",
    "RetryingFetcher",
    "backoff_delays",
]
