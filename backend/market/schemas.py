"""Pydantic models for metric payloads and the response envelopes around them."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class CoinPayload(BaseModel):
    price: float
    change_24h: float
    market_cap: float
    volume: float
    high_24h: float
    low_24h: float
    name: str
    symbol: str


class DominancePayload(BaseModel):
    btc_dominance: float
    eth_dominance: float
    total_market_cap: float
    total_volume: float


class EthBtcPayload(BaseModel):
    eth_btc: float
    btc_price: float
    eth_price: float


class CurrencyRates(BaseModel):
    RUB: float
    EUR: float
    CNY: float


class CurrenciesPayload(BaseModel):
    rates: CurrencyRates


class IndicesPayload(BaseModel):
    moex: float
    sp500: float


MetricPayload = Union[CoinPayload, DominancePayload, EthBtcPayload, CurrenciesPayload, IndicesPayload]


class MetricEnvelope(BaseModel):
    success: bool = True
    data: MetricPayload
    cached: bool
    error: Optional[str] = None
    timestamp: str = Field(default_factory=iso_now)

    def to_response(self) -> Dict[str, Any]:
        # error is only present on degraded responses
        return self.model_dump(exclude_none=True)


class HealthResponse(BaseModel):
    status: str = Field(pattern="^OK$")
    timestamp: str
    environment: str
    cache_age_ms: Optional[int] = None


class ClearCacheResponse(BaseModel):
    success: bool = True
    message: str = "Cache cleared"


__all__ = [
    "CoinPayload",
    "DominancePayload",
    "EthBtcPayload",
    "CurrencyRates",
    "CurrenciesPayload",
    "IndicesPayload",
    "MetricPayload",
    "MetricEnvelope",
    "HealthResponse",
    "ClearCacheResponse",
    "iso_now",
]
