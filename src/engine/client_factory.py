"""
Centralized collaborator factory for the DCA ladder bot.

Every entry point builds its RPC, swap, pair and price clients here so that
timeouts, retries and endpoints come from one place in the config.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from solana_client.async_rest import AsyncJsonClient
from solana_client.constants import (
    COINGECKO_API_URL,
    DEXSCREENER_API_URL,
    JUPITER_API_URL,
    default_rpc_url,
)
from solana_client.jupiter import JupiterSwapClient
from solana_client.pricing import CoinGeckoPriceFeed, DexscreenerClient
from solana_client.rpc import SolanaRpcClient


@dataclass
class Collaborators:
    rpc: SolanaRpcClient
    swap: JupiterSwapClient
    pairs: DexscreenerClient
    price_feed: CoinGeckoPriceFeed

    async def close(self) -> None:
        await self.swap.close()
        await self.pairs.close()
        await self.price_feed.close()
        await self.rpc.close()


def build_http_client(config: dict[str, Any], base_url: str) -> AsyncJsonClient:
    """
    Build a JSON client with the shared transport settings.

    Args:
        config: Configuration dict containing:
            - rest_timeout_sec: float (default: 10.0) - Request timeout
            - rest_retries: int (default: 3) - Max retries
            - rest_backoff_factor: float (default: 0.5) - Backoff multiplier
            - verify_ssl: bool (default: True) - Verify TLS certificates
        base_url: Endpoint root for this client

    Returns:
        AsyncJsonClient: Client with retry and rate-limit handling
    """
    return AsyncJsonClient(
        base_url,
        timeout=float(config.get("rest_timeout_sec", 10.0)),
        max_retries=int(config.get("rest_retries", 3)),
        backoff_factor=float(config.get("rest_backoff_factor", 0.5)),
        verify_ssl=bool(config.get("verify_ssl", True)),
    )


def build_collaborators(config: dict[str, Any]) -> Collaborators:
    """
    Build every remote collaborator the ladder needs.

    Args:
        config: Same transport settings as build_http_client(), plus:
            - rpc_url: str (default: mainnet-beta public RPC)
            - jupiter_url: str (default: Jupiter v6 quote API)
            - dexscreener_url: str (default: Dexscreener latest/dex API)
            - coingecko_url: str (default: CoinGecko v3 API)
            - native_price_cache_sec: float (default: 120) - Price cache TTL

    Returns:
        Collaborators: RPC, swap, pair and native price clients

    Example:
        >>> collaborators = build_collaborators({"rpc_url": "https://rpc.example"})
        >>> balance = await collaborators.rpc.get_balance(wallet)
    """
    rpc = SolanaRpcClient(
        http=build_http_client(config, config.get("rpc_url") or default_rpc_url()),
        commitment=str(config.get("commitment", "confirmed")),
    )
    swap = JupiterSwapClient(
        rpc,
        http=build_http_client(config, config.get("jupiter_url", JUPITER_API_URL)),
    )
    pairs = DexscreenerClient(
        http=build_http_client(
            config, config.get("dexscreener_url", DEXSCREENER_API_URL)
        ),
    )
    price_feed = CoinGeckoPriceFeed(
        cache_ttl=float(config.get("native_price_cache_sec", 120)),
        http=build_http_client(config, config.get("coingecko_url", COINGECKO_API_URL)),
    )
    return Collaborators(rpc=rpc, swap=swap, pairs=pairs, price_feed=price_feed)
