"""In-process store holding the last good payload for each metric.

Each metric owns exactly one ``CacheEntry``. Entries are immutable and are
swapped in whole under a lock, so a reader always sees a value together with
the timestamp it was written at.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    written_at: float

    def age(self, now: float) -> float:
        return max(0.0, now - self.written_at)


class MetricCacheStore:
    """Lock-guarded mapping of metric name -> CacheEntry with one freshness window."""

    def __init__(
        self,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.freshness_seconds = float(freshness_seconds)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(name)

    def is_fresh(self, name: str) -> bool:
        return self.is_entry_fresh(self.get(name))

    def is_entry_fresh(self, entry: Optional[CacheEntry]) -> bool:
        """Freshness of an entry already read, judged against one clock read."""
        if entry is None:
            return False
        return (self._clock() - entry.written_at) < self.freshness_seconds

    def put(self, name: str, value: Any) -> CacheEntry:
        entry = CacheEntry(value=value, written_at=self._clock())
        with self._lock:
            self._entries[name] = entry
        logger.debug("Cache set: %s", name)
        return entry

    def clear_all(self) -> None:
        with self._lock:
            dropped = len(self._entries)
            self._entries = {}
        logger.info("Cache cleared (%d entries dropped)", dropped, extra={"event": "cache_cleared"})

    def last_write_age(self) -> Optional[float]:
        """Seconds since the newest write across all metrics, or None when empty."""
        with self._lock:
            if not self._entries:
                return None
            newest = max(e.written_at for e in self._entries.values())
        return max(0.0, self._clock() - newest)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        now = self._clock()
        with self._lock:
            entries = dict(self._entries)
        return {
            name: {
                "age_seconds": round(entry.age(now), 3),
                "fresh": entry.age(now) < self.freshness_seconds,
            }
            for name, entry in entries.items()
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["CacheEntry", "MetricCacheStore", "DEFAULT_FRESHNESS_SECONDS"]
