"""Three-tier metric resolution: fresh cache, live fetch, then stale/static fallback.

``resolve`` never raises for a known metric. When the live path fails the
caller gets the last cached value (however old) or the resolver's static
default, flagged ``cached=True`` with an advisory ``error`` string.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, Dict

from backend.market.cache import MetricCacheStore
from backend.market.fetcher import FetchError, RetryingFetcher
from backend.market.resolvers import MetricResolver, ResolverRegistry
from backend.market.schemas import MetricEnvelope, iso_now

logger = logging.getLogger(__name__)


class UnknownMetricError(KeyError):
    """Requested metric has no registered resolver."""


class ResolutionOrchestrator:
    def __init__(
        self,
        store: MetricCacheStore,
        fetcher: RetryingFetcher,
        resolvers: ResolverRegistry,
        *,
        single_flight: bool = True,
        environment: str = "development",
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.resolvers = resolvers
        self.single_flight = single_flight
        self.environment = environment
        self._inflight: Dict[str, asyncio.Task] = {}
        # bumped by clear_all; refreshes started under an older value never write back
        self._generation = 0
        self._stats_lock = threading.Lock()
        self._stats: Dict[str, Dict[str, int]] = defaultdict(
            lambda: {"calls": 0, "served_cached": 0, "served_fresh": 0, "degraded": 0, "joined_inflight": 0}
        )

    def _bump(self, name: str, key: str) -> None:
        with self._stats_lock:
            self._stats[name][key] += 1

    def _resolver(self, name: str) -> MetricResolver:
        resolver = self.resolvers.get(name)
        if resolver is None:
            raise UnknownMetricError(name)
        return resolver

    async def resolve(self, name: str) -> MetricEnvelope:
        resolver = self._resolver(name)
        self._bump(name, "calls")

        entry = self.store.get(name)
        if self.store.is_entry_fresh(entry):
            logger.debug("Returning cached %s data", name)
            self._bump(name, "served_cached")
            return MetricEnvelope(data=entry.value, cached=True)

        if not self.single_flight:
            return await self._refresh(resolver)

        task = self._inflight.get(name)
        if task is not None:
            self._bump(name, "joined_inflight")
            return await asyncio.shield(task)
        task = asyncio.ensure_future(self._refresh(resolver))
        self._inflight[name] = task
        try:
            return await asyncio.shield(task)
        finally:
            if task.done() and self._inflight.get(name) is task:
                del self._inflight[name]
            elif not task.done():
                task.add_done_callback(lambda t, n=name: self._forget(n, t))

    def _forget(self, name: str, task: asyncio.Task) -> None:
        if self._inflight.get(name) is task:
            del self._inflight[name]

    async def _refresh(self, resolver: MetricResolver) -> MetricEnvelope:
        name = resolver.name
        generation = self._generation
        try:
            payload = await resolver.resolve(self.fetcher)
        except Exception as exc:
            return self._degraded(resolver, exc)
        if generation == self._generation:
            self.store.put(name, payload)
        else:
            logger.debug("Discarding %s refresh started before cache clear", name)
        self._bump(name, "served_fresh")
        return MetricEnvelope(data=payload, cached=False)

    def _degraded(self, resolver: MetricResolver, exc: BaseException) -> MetricEnvelope:
        name = resolver.name
        entry = self.store.get(name)
        source = "stale_cache" if entry is not None else "static_default"
        extra = {"event": "resolution_degraded", "metric": name, "source": source}
        if isinstance(exc, FetchError):
            logger.warning("%s resolution degraded: %s", name, exc, extra=extra)
        else:
            logger.exception("%s resolution failed unexpectedly", name, exc_info=exc, extra=extra)
        self._bump(name, "degraded")
        payload = entry.value if entry is not None else resolver.static_default()
        return MetricEnvelope(data=payload, cached=True, error=resolver.degraded_message)

    def clear_all(self) -> None:
        self._generation += 1
        self._inflight.clear()
        self.store.clear_all()

    def health(self) -> Dict[str, Any]:
        age = self.store.last_write_age()
        return {
            "status": "OK",
            "timestamp": iso_now(),
            "environment": self.environment,
            "cache_age_ms": int(age * 1000) if age is not None else None,
        }

    def stats(self) -> Dict[str, Dict[str, int]]:
        with self._stats_lock:
            return {name: dict(counts) for name, counts in self._stats.items()}

    async def close(self) -> None:
        await self.fetcher.close()


__all__ = ["ResolutionOrchestrator", "UnknownMetricError"]
