"""Collaborator interfaces for the ladder engine."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Collection, Protocol

import aiohttp

from solana_client.async_rest import HttpClientError
from solana_client.models import PairInfo, SignatureStatus, SwapQuote
from solana_client.rpc import RpcError
from solana_client.signer import TransactionSigner

# Failures of a remote collaborator that end the current tick only.
COLLABORATOR_ERRORS = (
    RpcError,
    HttpClientError,
    aiohttp.ClientError,
    asyncio.TimeoutError,
)


class SwapClient(Protocol):
    async def quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int | None = None,
    ) -> SwapQuote:
        """Quote ``amount`` raw units of ``input_mint`` into ``output_mint``."""

    async def execute(self, quote: SwapQuote, signer: TransactionSigner) -> str:
        """Submit the quoted swap and return the transaction signature."""


class ChainClient(Protocol):
    async def get_balance(self, owner: str) -> int:
        """Native balance in lamports."""

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Raw token balance; zero when the account does not exist."""

    async def get_token_decimals(self, mint: str) -> int:
        """Decimals of the token mint."""

    async def get_signature_status(self, signature: str) -> SignatureStatus | None:
        """Status of a submitted signature, or None when not yet visible."""

    async def transfer_native(
        self, signer: TransactionSigner, destination: str, lamports: int
    ) -> str:
        """Submit a lamport transfer and return the signature."""

    async def find_outbound_transfer(
        self,
        owner: str,
        mint: str,
        *,
        since: float,
        exclude: Collection[str] = (),
        limit: int = 20,
    ) -> str | None:
        """Signature of a manual token transfer out of the wallet, if any."""


class PairClient(Protocol):
    async def get_pair(self, pair_address: str) -> PairInfo:
        """Current price and symbols for the pair."""


class NativePriceFeed(Protocol):
    async def native_price_quote(self) -> Decimal:
        """Native asset price in the quote currency."""
