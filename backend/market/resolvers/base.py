"""Resolver interface and registry for the served metrics."""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from pydantic import BaseModel

DEGRADED_MESSAGE = "Using cached data due to API limits"


def dig(payload: Any, *path: str) -> Any:
    """Walk nested mappings, returning None as soon as a step is missing."""
    node = payload
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def number_or(value: Any, default: Optional[float]) -> Optional[float]:
    """Numeric upstream value, or ``default`` when absent, null or not a number."""
    if isinstance(value, bool) or value is None:
        return default
    if not isinstance(value, (int, float, str)):
        return default
    try:
        parsed = float(value)
    except (ValueError, OverflowError):
        # ints beyond float range overflow instead of becoming inf
        return default
    return parsed if math.isfinite(parsed) else default


def text_or(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


class MetricResolver(ABC):
    """Contract for one metric: upstream call, transform, and static fallback.

    ``transform`` must populate every field, substituting the static default
    for anything missing upstream. Only ``fetch`` is allowed to fail.
    """

    name: str = "base"
    route: str = ""
    degraded_message: str = DEGRADED_MESSAGE

    @abstractmethod
    async def fetch(self, fetcher) -> Any:
        """Return the raw upstream payload."""

    @abstractmethod
    def transform(self, raw: Any) -> BaseModel:
        """Normalize ``raw`` into this metric's payload model."""

    @abstractmethod
    def static_default(self) -> BaseModel:
        """Payload served when there is neither a live result nor a cache entry."""

    async def resolve(self, fetcher) -> BaseModel:
        return self.transform(await self.fetch(fetcher))


class ResolverRegistry:
    """Name -> resolver lookup, in registration order."""

    def __init__(self, resolvers: Iterable[MetricResolver] = ()) -> None:
        self._resolvers: Dict[str, MetricResolver] = {}
        for resolver in resolvers:
            self.register(resolver)

    def register(self, resolver: MetricResolver) -> None:
        if resolver.name in self._resolvers:
            raise ValueError(f"Resolver '{resolver.name}' already registered")
        self._resolvers[resolver.name] = resolver

    def get(self, name: str) -> Optional[MetricResolver]:
        return self._resolvers.get(name)

    def names(self) -> List[str]:
        return list(self._resolvers)

    def __iter__(self) -> Iterator[MetricResolver]:
        return iter(list(self._resolvers.values()))

    def __contains__(self, name: object) -> bool:
        return name in self._resolvers

    def __len__(self) -> int:
        return len(self._resolvers)


__all__ = [
    "DEGRADED_MESSAGE",
    "MetricResolver",
    "ResolverRegistry",
    "dig",
    "number_or",
    "text_or",
]
