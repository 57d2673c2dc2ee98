"""Jupiter v6 quote/swap client."""

from __future__ import annotations

import base64
import logging

from solana_client.async_rest import AsyncJsonClient, HttpClientError
from solana_client.constants import JUPITER_API_URL
from solana_client.models import SwapQuote
from solana_client.rpc import SolanaRpcClient
from solana_client.signer import TransactionSigner

LOGGER = logging.getLogger("dca_bot.jupiter")

DEFAULT_SLIPPAGE_BPS = 50


class JupiterSwapClient:
    """Quote and submit swaps through the Jupiter aggregator."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        *,
        http: AsyncJsonClient | None = None,
        base_url: str = JUPITER_API_URL,
    ) -> None:
        self.rpc = rpc
        self.http = http or AsyncJsonClient(base_url)

    async def quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int | None = None,
    ) -> SwapQuote:
        response = await self.http.get(
            "/quote",
            {
                "inputMint": input_mint,
                "outputMint": output_mint,
                "amount": str(amount),
                "slippageBps": slippage_bps
                if slippage_bps is not None
                else DEFAULT_SLIPPAGE_BPS,
            },
        )
        payload = response
        if isinstance(response, dict) and isinstance(response.get("data"), list):
            if not response["data"]:
                raise HttpClientError(
                    f"No route for {amount} {input_mint} -> {output_mint}"
                )
            payload = response["data"][0]
        return SwapQuote.from_payload(payload)

    async def execute(self, quote: SwapQuote, signer: TransactionSigner) -> str:
        """Build the swap transaction, sign it and submit; returns the signature."""
        response = await self.http.post(
            "/swap",
            {
                "quoteResponse": dict(quote.raw_payload),
                "userPublicKey": signer.public_key,
                "wrapAndUnwrapSol": True,
                "dynamicComputeUnitLimit": True,
            },
        )
        swap_tx = response.get("swapTransaction") if isinstance(response, dict) else None
        if not swap_tx:
            raise HttpClientError(f"Swap response missing transaction: {response}")
        signed = signer.sign_transaction(base64.b64decode(swap_tx))
        signature = await self.rpc.send_transaction(signed)
        LOGGER.debug(
            "Submitted swap %s -> %s (in=%s) sig=%s",
            quote.input_mint,
            quote.output_mint,
            quote.in_amount,
            signature,
        )
        return signature

    async def close(self) -> None:
        await self.http.close()
