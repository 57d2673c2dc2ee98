"""Pair metadata and native reference price lookups."""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Callable

from solana_client.async_rest import AsyncJsonClient, HttpClientError
from solana_client.constants import COINGECKO_API_URL, DEXSCREENER_API_URL
from solana_client.models import PairInfo


class DexscreenerClient:
    """Spot price and symbols for a pair address."""

    def __init__(
        self,
        *,
        chain: str = "solana",
        http: AsyncJsonClient | None = None,
        base_url: str = DEXSCREENER_API_URL,
    ) -> None:
        self.chain = chain
        self.http = http or AsyncJsonClient(base_url)

    async def get_pair(self, pair_address: str) -> PairInfo:
        response = await self.http.get(f"/pairs/{self.chain}/{pair_address}")
        pair = response.get("pair") if isinstance(response, dict) else None
        if pair is None and isinstance(response, dict):
            pairs = response.get("pairs") or []
            pair = pairs[0] if pairs else None
        if not isinstance(pair, dict):
            raise HttpClientError(f"Pair {pair_address} not found")
        return PairInfo(
            pair_address=pair_address,
            base_symbol=str(pair.get("baseToken", {}).get("symbol", "TOKEN")),
            quote_symbol=str(pair.get("quoteToken", {}).get("symbol", "SOL")),
            price_quote=pair.get("priceUsd"),
        )

    async def close(self) -> None:
        await self.http.close()


class CoinGeckoPriceFeed:
    """Native asset price in the quote currency, cached for ``cache_ttl`` seconds."""

    def __init__(
        self,
        *,
        coin_id: str = "solana",
        vs_currency: str = "usd",
        cache_ttl: float = 120.0,
        http: AsyncJsonClient | None = None,
        base_url: str = COINGECKO_API_URL,
        time_provider: Callable[[], float] | None = None,
    ) -> None:
        self.coin_id = coin_id
        self.vs_currency = vs_currency
        self.cache_ttl = cache_ttl
        self.http = http or AsyncJsonClient(base_url)
        self._time = time_provider or time.monotonic
        self._cached: tuple[float, Decimal] | None = None

    async def native_price_quote(self) -> Decimal:
        now = self._time()
        if self._cached is not None and now - self._cached[0] < self.cache_ttl:
            return self._cached[1]
        response = await self.http.get(
            "/simple/price",
            {"ids": self.coin_id, "vs_currencies": self.vs_currency},
        )
        try:
            price = Decimal(str(response[self.coin_id][self.vs_currency]))
        except (KeyError, TypeError) as exc:
            raise HttpClientError(f"Unexpected price payload: {response}") from exc
        if price <= 0:
            raise HttpClientError(f"Non-positive native price: {price}")
        self._cached = (now, price)
        return price

    async def close(self) -> None:
        await self.http.close()
