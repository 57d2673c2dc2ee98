"""Solana JSON-RPC client for balance, signature and transfer queries."""

from __future__ import annotations

import base64
import itertools
import logging
from typing import Any, Collection, Iterable

from solana_client.async_rest import AsyncJsonClient
from solana_client.constants import RPC_ACCOUNT_NOT_FOUND_CODE, default_rpc_url
from solana_client.models import SignatureInfo, SignatureStatus, TokenTransfer
from solana_client.signer import TransactionSigner

LOGGER = logging.getLogger("dca_bot.rpc")

_TRANSFER_TYPES = {"transfer", "transferChecked"}


class RpcError(Exception):
    """JSON-RPC error response."""

    def __init__(
        self, message: str, *, code: int | None = None, logs: Iterable[str] = ()
    ) -> None:
        super().__init__(message)
        self.code = code
        self.logs = list(logs)


class AccountNotFoundError(RpcError):
    """Raised when the queried account does not exist yet."""


class InsufficientFundsError(RpcError):
    """Raised when simulation or submission fails for lack of lamports."""


class SolanaRpcClient:
    """Minimal async Solana JSON-RPC client."""

    def __init__(
        self,
        url: str | None = None,
        *,
        http: AsyncJsonClient | None = None,
        commitment: str = "confirmed",
    ) -> None:
        self.http = http or AsyncJsonClient(url or default_rpc_url())
        self.commitment = commitment
        self._ids = itertools.count(1)

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        response = await self.http.post("", payload)
        error = response.get("error") if isinstance(response, dict) else None
        if error:
            code = error.get("code")
            message = str(error.get("message", "RPC error"))
            data = error.get("data")
            logs = (data.get("logs") or []) if isinstance(data, dict) else []
            if code == RPC_ACCOUNT_NOT_FOUND_CODE or "could not find account" in message:
                raise AccountNotFoundError(message, code=code, logs=logs)
            if _mentions_insufficient_funds(message, logs):
                raise InsufficientFundsError(
                    f"{method} failed: {message}", code=code, logs=logs
                )
            raise RpcError(f"{method} failed: {message}", code=code, logs=logs)
        return response.get("result") if isinstance(response, dict) else None

    async def get_balance(self, owner: str) -> int:
        result = await self.call("getBalance", [owner, {"commitment": self.commitment}])
        return int(result["value"])

    async def get_token_accounts(self, owner: str, mint: str) -> dict[str, int]:
        """Return ``{token_account: raw_amount}`` for the owner's accounts of a mint."""
        try:
            result = await self.call(
                "getTokenAccountsByOwner",
                [
                    owner,
                    {"mint": mint},
                    {"encoding": "jsonParsed", "commitment": self.commitment},
                ],
            )
        except AccountNotFoundError:
            return {}
        accounts: dict[str, int] = {}
        for entry in result.get("value", []):
            info = entry["account"]["data"]["parsed"]["info"]
            accounts[entry["pubkey"]] = int(info["tokenAmount"]["amount"])
        return accounts

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Raw token balance; a missing token account counts as zero."""
        accounts = await self.get_token_accounts(owner, mint)
        return sum(accounts.values())

    async def get_token_decimals(self, mint: str) -> int:
        result = await self.call("getTokenSupply", [mint])
        return int(result["value"]["decimals"])

    async def get_signature_status(self, signature: str) -> SignatureStatus | None:
        result = await self.call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": True}],
        )
        values = result.get("value") or [None]
        if values[0] is None:
            return None
        return SignatureStatus.model_validate(values[0])

    async def get_signatures_for_address(
        self, address: str, limit: int = 20
    ) -> list[SignatureInfo]:
        result = await self.call(
            "getSignaturesForAddress", [address, {"limit": limit}]
        )
        return [SignatureInfo.model_validate(item) for item in result or []]

    async def get_parsed_transaction(self, signature: str) -> dict[str, Any] | None:
        return await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self.commitment,
                },
            ],
        )

    async def get_latest_blockhash(self) -> str:
        result = await self.call(
            "getLatestBlockhash", [{"commitment": self.commitment}]
        )
        return str(result["value"]["blockhash"])

    async def send_transaction(self, raw_transaction: bytes) -> str:
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        result = await self.call(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )
        return str(result)

    async def transfer_native(
        self, signer: TransactionSigner, destination: str, lamports: int
    ) -> str:
        """Sign and submit a plain lamport transfer; returns the signature."""
        blockhash = await self.get_latest_blockhash()
        raw = signer.build_transfer(destination, lamports, blockhash)
        return await self.send_transaction(raw)

    async def find_outbound_transfer(
        self,
        owner: str,
        mint: str,
        *,
        since: float,
        exclude: Collection[str] = (),
        limit: int = 20,
    ) -> str | None:
        """Return the signature of a token transfer out of ``owner`` after ``since``.

        Transactions in ``exclude`` (the bot's own swaps) are ignored.
        """
        token_accounts = set(await self.get_token_accounts(owner, mint))
        for info in await self.get_signatures_for_address(owner, limit=limit):
            if info.block_time is None or info.block_time <= since:
                continue
            if info.signature in exclude or info.err is not None:
                continue
            tx = await self.get_parsed_transaction(info.signature)
            if not tx:
                continue
            for transfer in parse_token_transfers(tx):
                if transfer.mint is not None and transfer.mint != mint:
                    continue
                if transfer.source in token_accounts:
                    return info.signature
                if transfer.mint == mint and transfer.authority == owner:
                    return info.signature
        return None

    async def close(self) -> None:
        await self.http.close()


def _mentions_insufficient_funds(message: str, logs: Iterable[str]) -> bool:
    fragments = ("insufficient lamports", "insufficient funds")
    haystack = [message.lower(), *(line.lower() for line in logs)]
    return any(fragment in line for line in haystack for fragment in fragments)


def parse_token_transfers(tx: dict[str, Any]) -> list[TokenTransfer]:
    """Extract spl-token transfer instructions from a jsonParsed transaction."""
    message = tx.get("transaction", {}).get("message", {})
    instructions = list(message.get("instructions", []))
    for inner in (tx.get("meta") or {}).get("innerInstructions") or []:
        instructions.extend(inner.get("instructions", []))
    transfers = []
    for ix in instructions:
        if ix.get("program") != "spl-token":
            continue
        parsed = ix.get("parsed")
        if not isinstance(parsed, dict) or parsed.get("type") not in _TRANSFER_TYPES:
            continue
        info = parsed.get("info", {})
        amount = info.get("amount")
        if amount is None:
            amount = (info.get("tokenAmount") or {}).get("amount")
        transfers.append(
            TokenTransfer(
                source=info.get("source"),
                destination=info.get("destination"),
                authority=info.get("authority") or info.get("multisigAuthority"),
                mint=info.get("mint"),
                amount=None if amount is None else str(amount),
            )
        )
    return transfers
