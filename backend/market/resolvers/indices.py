"""Synthetic stock index levels (no upstream source)."""
from __future__ import annotations

import logging
import random
from typing import Any, Optional

from backend.market.resolvers.base import MetricResolver, dig, number_or
from backend.market.schemas import IndicesPayload

logger = logging.getLogger(__name__)

MOEX_BASELINE = 3247.85
SP500_BASELINE = 4785.32
VARIATION_SPAN = 10.0  # perturbation is uniform in [-5, 5)
SP500_SCALE = 1.5


class IndicesResolver(MetricResolver):
    """Baseline levels plus a small random drift, recomputed per live resolution."""

    name = "indices"
    route = "/api/indices"
    degraded_message = "Using cached data"

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    async def fetch(self, fetcher) -> Any:
        logger.info("Generating indices data...")
        variation = (self._rng.random() - 0.5) * VARIATION_SPAN
        return {
            "moex": MOEX_BASELINE + variation,
            "sp500": SP500_BASELINE + variation * SP500_SCALE,
        }

    def transform(self, raw: Any) -> IndicesPayload:
        return IndicesPayload(
            moex=number_or(dig(raw, "moex"), MOEX_BASELINE),
            sp500=number_or(dig(raw, "sp500"), SP500_BASELINE),
        )

    def static_default(self) -> IndicesPayload:
        return IndicesPayload(moex=MOEX_BASELINE, sp500=SP500_BASELINE)


__all__ = ["IndicesResolver", "MOEX_BASELINE", "SP500_BASELINE"]
