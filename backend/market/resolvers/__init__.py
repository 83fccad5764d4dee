"""Resolvers for the six served metrics."""
from __future__ import annotations

import random
from typing import Optional

from .base import DEGRADED_MESSAGE, MetricResolver, ResolverRegistry
from .coingecko import (
    COINGECKO_BASE_URL,
    BitcoinResolver,
    DominanceResolver,
    EthBtcResolver,
    EthereumResolver,
)
from .frankfurter import FRANKFURTER_BASE_URL, CurrenciesResolver
from .indices import IndicesResolver


def default_resolvers(
    coingecko_base_url: str = COINGECKO_BASE_URL,
    frankfurter_base_url: str = FRANKFURTER_BASE_URL,
    rng: Optional[random.Random] = None,
) -> ResolverRegistry:
    return ResolverRegistry(
        [
            BitcoinResolver(coingecko_base_url),
            EthereumResolver(coingecko_base_url),
            DominanceResolver(coingecko_base_url),
            EthBtcResolver(coingecko_base_url),
            CurrenciesResolver(frankfurter_base_url),
            IndicesResolver(rng),
        ]
    )


__all__ = [
    "DEGRADED_MESSAGE",
    "MetricResolver",
    "ResolverRegistry",
    "BitcoinResolver",
    "EthereumResolver",
    "DominanceResolver",
    "EthBtcResolver",
    "CurrenciesResolver",
    "IndicesResolver",
    "default_resolvers",
]
