"""FX rates against USD from the Frankfurter API."""
from __future__ import annotations

import logging
from typing import Any

from backend.market.resolvers.base import MetricResolver, dig, number_or
from backend.market.schemas import CurrenciesPayload, CurrencyRates

logger = logging.getLogger(__name__)

FRANKFURTER_BASE_URL = "https://api.frankfurter.app"
BASE_CURRENCY = "USD"
DEFAULT_RATES = {"RUB": 91.45, "EUR": 0.92, "CNY": 7.25}


class CurrenciesResolver(MetricResolver):
    name = "currencies"
    route = "/api/currencies"

    def __init__(self, base_url: str = FRANKFURTER_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")

    async def fetch(self, fetcher) -> Any:
        logger.info("Fetching fresh currency data...")
        return await fetcher.fetch_json(f"{self.base_url}/latest?from={BASE_CURRENCY}")

    def transform(self, raw: Any) -> CurrenciesPayload:
        rates = dig(raw, "rates")
        return CurrenciesPayload(
            rates=CurrencyRates(
                **{code: number_or(dig(rates, code), default) for code, default in DEFAULT_RATES.items()}
            )
        )

    def static_default(self) -> CurrenciesPayload:
        return CurrenciesPayload(rates=CurrencyRates(**DEFAULT_RATES))


__all__ = ["CurrenciesResolver", "DEFAULT_RATES"]
