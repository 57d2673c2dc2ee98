"""Tip accrual on realized profit with threshold-based payout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Awaitable, Callable

from engine.confirmation import wait_for_confirmation
from engine.execution_client import ChainClient
from engine.state import LadderState
from solana_client.constants import LAMPORTS_PER_SOL
from solana_client.signer import TransactionSigner

LOGGER = logging.getLogger("dca_bot.tip_jar")

TIP_RATE = Decimal("0.01")
DEFAULT_FLUSH_THRESHOLD_QUOTE = Decimal("0.01")


@dataclass(frozen=True)
class TipJarConfig:
    rate: Decimal = TIP_RATE
    flush_threshold_quote: Decimal = DEFAULT_FLUSH_THRESHOLD_QUOTE
    destination: str | None = None


@dataclass(frozen=True)
class TipOutcome:
    status: str  # accrued, sent, failed or idle
    amount_native: int
    signature: str | None = None


def native_to_quote(amount_native: int, native_price: Decimal) -> Decimal:
    return Decimal(amount_native) / Decimal(LAMPORTS_PER_SOL) * native_price


def quote_to_native(amount_quote: Decimal, native_price: Decimal) -> int:
    if native_price <= 0:
        return 0
    lamports = amount_quote / native_price * Decimal(LAMPORTS_PER_SOL)
    return int(lamports.to_integral_value(rounding=ROUND_FLOOR))


class TipJar:
    """Accrues a share of each sell's profit and pays it out once large enough."""

    def __init__(
        self,
        chain: ChainClient,
        config: TipJarConfig,
        *,
        mode: str = "live",
        confirm: Callable[[ChainClient, str], Awaitable[bool]] = wait_for_confirmation,
    ) -> None:
        self.chain = chain
        self.config = config
        self.mode = mode
        self._confirm = confirm

    def accrue(self, state: LadderState, profit_quote: Decimal, native_price: Decimal) -> int:
        """Add the tip for ``profit_quote`` to the pending balance; return lamports added."""
        tip_quote = profit_quote * self.config.rate
        if tip_quote <= 0:
            return 0
        tip_native = quote_to_native(tip_quote, native_price)
        if tip_native <= 0:
            return 0
        state.accrue_tip(tip_native)
        return tip_native

    def due(self, state: LadderState, native_price: Decimal) -> bool:
        pending_quote = native_to_quote(state.pending_tip_native, native_price)
        return (
            state.pending_tip_native > 0
            and pending_quote >= self.config.flush_threshold_quote
        )

    async def maybe_flush(
        self,
        state: LadderState,
        native_price: Decimal,
        signer: TransactionSigner | None,
    ) -> TipOutcome:
        """Pay out the pending balance when due.

        The pending balance is zeroed only after a confirmed transfer; any
        failure leaves it for the next attempt.
        """
        pending = state.pending_tip_native
        if not self.due(state, native_price):
            return TipOutcome("accrued", pending)
        if self.config.destination is None or signer is None or self.mode != "live":
            LOGGER.info(
                "Tip payout of %s lamports held (mode=%s, destination=%s).",
                pending,
                self.mode,
                self.config.destination,
            )
            return TipOutcome("idle", pending)
        try:
            signature = await self.chain.transfer_native(
                signer, self.config.destination, pending
            )
            confirmed = await self._confirm(self.chain, signature)
        except Exception as exc:
            LOGGER.warning("Tip payout failed: %s", exc)
            return TipOutcome("failed", pending)
        if not confirmed:
            LOGGER.warning("Tip payout %s was not confirmed.", signature)
            return TipOutcome("failed", pending, signature)
        state.clear_tip()
        LOGGER.info("Tip of %s lamports sent (tx: %s).", pending, signature)
        return TipOutcome("sent", pending, signature)


def build_tip_jar(
    config: dict[str, Any],
    chain: ChainClient,
    mode: str,
) -> TipJar:
    tip_config = TipJarConfig(
        flush_threshold_quote=Decimal(
            str(config.get("tip_flush_threshold_quote", DEFAULT_FLUSH_THRESHOLD_QUOTE))
        ),
        destination=config.get("tip_destination") or None,
    )
    return TipJar(chain, tip_config, mode=mode)
