"""CoinGecko-backed resolvers: coin detail, global dominance and the ETH/BTC pair."""
from __future__ import annotations

import logging
from typing import Any, Dict

from backend.market.resolvers.base import MetricResolver, dig, number_or, text_or
from backend.market.schemas import CoinPayload, DominancePayload, EthBtcPayload

logger = logging.getLogger(__name__)

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


class _CoinGeckoResolver(MetricResolver):
    def __init__(self, base_url: str = COINGECKO_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")


class CoinDetailResolver(_CoinGeckoResolver):
    """Per-coin market data from ``/coins/{id}``."""

    coin_id: str = ""
    defaults: Dict[str, Any] = {}

    @property
    def url(self) -> str:
        return f"{self.base_url}/coins/{self.coin_id}"

    async def fetch(self, fetcher) -> Any:
        logger.info("Fetching fresh %s data...", self.coin_id)
        return await fetcher.fetch_json(self.url)

    def transform(self, raw: Any) -> CoinPayload:
        d = self.defaults
        md = dig(raw, "market_data")
        symbol = dig(raw, "symbol")
        return CoinPayload(
            price=number_or(dig(md, "current_price", "usd"), d["price"]),
            change_24h=number_or(dig(md, "price_change_percentage_24h"), d["change_24h"]),
            market_cap=number_or(dig(md, "market_cap", "usd"), d["market_cap"]),
            volume=number_or(dig(md, "total_volume", "usd"), d["volume"]),
            high_24h=number_or(dig(md, "high_24h", "usd"), d["high_24h"]),
            low_24h=number_or(dig(md, "low_24h", "usd"), d["low_24h"]),
            name=text_or(dig(raw, "name"), d["name"]),
            symbol=text_or(symbol, d["symbol"]).upper(),
        )

    def static_default(self) -> CoinPayload:
        return CoinPayload(**self.defaults)


class BitcoinResolver(CoinDetailResolver):
    name = "bitcoin"
    route = "/api/bitcoin"
    coin_id = "bitcoin"
    defaults = {
        "price": 112051,
        "change_24h": 0.26,
        "market_cap": 2236379345199,
        "volume": 78303134204,
        "high_24h": 113537,
        "low_24h": 111088,
        "name": "Bitcoin",
        "symbol": "BTC",
    }


class EthereumResolver(CoinDetailResolver):
    name = "ethereum"
    route = "/api/ethereum"
    coin_id = "ethereum"
    defaults = {
        "price": 4070,
        "change_24h": 2.74,
        "market_cap": 488000000000,
        "volume": 15000000000,
        "high_24h": 4120,
        "low_24h": 4020,
        "name": "Ethereum",
        "symbol": "ETH",
    }


class DominanceResolver(_CoinGeckoResolver):
    name = "dominance"
    route = "/api/btc-dominance"
    defaults = {
        "btc_dominance": 57.0,
        "eth_dominance": 17.8,
        "total_market_cap": 1700000000000,
        "total_volume": 80000000000,
    }

    async def fetch(self, fetcher) -> Any:
        logger.info("Fetching fresh dominance data...")
        return await fetcher.fetch_json(f"{self.base_url}/global")

    def transform(self, raw: Any) -> DominancePayload:
        d = self.defaults
        data = dig(raw, "data")
        return DominancePayload(
            btc_dominance=number_or(dig(data, "market_cap_percentage", "btc"), d["btc_dominance"]),
            eth_dominance=number_or(dig(data, "market_cap_percentage", "eth"), d["eth_dominance"]),
            total_market_cap=number_or(dig(data, "total_market_cap", "usd"), d["total_market_cap"]),
            total_volume=number_or(dig(data, "total_volume", "usd"), d["total_volume"]),
        )

    def static_default(self) -> DominancePayload:
        return DominancePayload(**self.defaults)


class EthBtcResolver(_CoinGeckoResolver):
    """ETH priced in BTC, derived from one combined simple-price call."""

    name = "eth_btc"
    route = "/api/eth-btc"
    defaults = {"eth_btc": 0.0364, "btc_price": 111837, "eth_price": 4070}

    async def fetch(self, fetcher) -> Any:
        logger.info("Calculating fresh ETH/BTC pair...")
        return await fetcher.fetch_json(
            f"{self.base_url}/simple/price?ids=bitcoin,ethereum&vs_currencies=usd"
        )

    def transform(self, raw: Any) -> EthBtcPayload:
        d = self.defaults
        btc = number_or(dig(raw, "bitcoin", "usd"), None)
        eth = number_or(dig(raw, "ethereum", "usd"), None)
        if btc is not None and eth is not None and btc > 0:
            ratio = eth / btc
        else:
            ratio = d["eth_btc"]
        return EthBtcPayload(
            eth_btc=ratio,
            btc_price=d["btc_price"] if btc is None else btc,
            eth_price=d["eth_price"] if eth is None else eth,
        )

    def static_default(self) -> EthBtcPayload:
        return EthBtcPayload(**self.defaults)


__all__ = [
    "CoinDetailResolver",
    "BitcoinResolver",
    "EthereumResolver",
    "DominanceResolver",
    "EthBtcResolver",
]
