"""DCA ladder strategy: scaled buys on drawdowns, full exit at a profit target."""

from __future__ import annotations

import enum
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Awaitable, Callable, Sequence

from engine.confirmation import wait_for_confirmation
from engine.execution_client import (
    COLLABORATOR_ERRORS,
    ChainClient,
    NativePriceFeed,
    PairClient,
    SwapClient,
)
from engine.state import BuyRecord, LadderState, SellSummary, StateStore
from solana_client.constants import (
    BENIGN_SIMULATION_ERROR_CODE,
    DEFAULT_TOKEN_DECIMALS,
    LAMPORTS_PER_SOL,
    NATIVE_MINT,
)
from solana_client.rpc import InsufficientFundsError
from solana_client.signer import TransactionSigner
from strategies.volatility_band import VolatilityBand
from utils.notifications import EventKind, NotificationRouter
from utils.tip_jar import TipJar, native_to_quote
from utils.trade_log import TradeLog

LOGGER = logging.getLogger("dca_bot.strategy.dca_ladder")

__all__ = [
    "DcaLadderConfig",
    "DcaLadderStrategy",
    "ExecutionError",
    "InsufficientFundsError",
    "LadderAction",
    "LadderContext",
    "LadderDecision",
    "LadderPreview",
    "PnlSummary",
    "average_cost",
    "buy_trigger",
    "decide_action",
    "is_benign_simulation_error",
    "ladder_preview",
    "next_drop_pct",
    "next_rung_native",
    "rolling_pnl_summary",
    "sell_trigger",
]


class ExecutionError(RuntimeError):
    """A submitted swap did not reach confirmed settlement."""


@dataclass(frozen=True)
class DcaLadderConfig:
    token_mint: str
    pair_address: str
    initial_rung_native: int = 12_500_000
    max_rungs: int = 0
    volume_multiplier: Decimal = Decimal("2")
    base_drop_pct: Decimal = Decimal("10")
    drop_multiplier: Decimal = Decimal("1")
    sell_profit_pct: Decimal = Decimal("2.5")
    indicator_period: int = 20
    indicator_spread_multiplier: Decimal = Decimal("2")
    no_buy_zone_enabled: bool = False
    slippage_cap_bps: int = 50
    underflow_tolerance: Decimal = Decimal("0.9")
    detect_manual_transfers: bool = False
    verbose: bool = False
    poll_interval_sec: float = 60.0
    pnl_window_hours: Decimal = Decimal("12")
    mode: str = "live"


class LadderAction(str, enum.Enum):
    FIRST_BUY = "first_buy"
    RUNG_BUY = "rung_buy"
    SELL_ALL = "sell_all"
    HOLD = "hold"
    HOLD_CAPPED = "hold_capped"
    HOLD_PAUSED = "hold_paused"
    HOLD_NO_BUY_ZONE = "hold_no_buy_zone"


@dataclass(frozen=True)
class LadderDecision:
    action: LadderAction
    rung_index: int
    native_amount: int | None = None
    buy_trigger: Decimal | None = None
    sell_trigger: Decimal | None = None

    @property
    def is_buy(self) -> bool:
        return self.action in (LadderAction.FIRST_BUY, LadderAction.RUNG_BUY)


@dataclass(frozen=True)
class LadderPreview:
    rungs: tuple[int, ...]
    total_native: int
    absorbed_drop_pct: Decimal
    bounded: bool


@dataclass(frozen=True)
class PnlSummary:
    profit_quote: Decimal
    profit_native: Decimal
    profit_pct: Decimal
    sells: int


def next_rung_native(config: DcaLadderConfig, rung_index: int) -> int:
    size = Decimal(config.initial_rung_native) * config.volume_multiplier**rung_index
    return int(size.to_integral_value(rounding=ROUND_FLOOR))


def next_drop_pct(config: DcaLadderConfig, rung_index: int) -> Decimal:
    return config.base_drop_pct * config.drop_multiplier**rung_index


def average_cost(buys: Sequence[BuyRecord]) -> Decimal | None:
    """Cost-weighted average entry price; None without any asset held."""
    total_asset = sum(buy.asset_amount for buy in buys)
    if total_asset <= 0:
        return None
    weighted = sum(
        (buy.price * Decimal(buy.asset_amount) for buy in buys), Decimal("0")
    )
    return weighted / Decimal(total_asset)


def buy_trigger(last_buy_price: Decimal, drop_pct: Decimal) -> Decimal:
    return last_buy_price * (Decimal("1") - drop_pct / Decimal("100"))


def sell_trigger(avg_cost: Decimal, sell_profit_pct: Decimal) -> Decimal:
    return avg_cost * (Decimal("1") + sell_profit_pct / Decimal("100"))


def decide_action(
    config: DcaLadderConfig,
    buys: Sequence[BuyRecord],
    price: Decimal,
    *,
    upper_band: Decimal | None = None,
    paused: bool = False,
) -> LadderDecision:
    """Pick this tick's action from the ledger, the price and the band."""
    rung_index = len(buys)
    if rung_index == 0:
        return LadderDecision(
            LadderAction.FIRST_BUY,
            rung_index=0,
            native_amount=config.initial_rung_native,
        )

    buy_below = buy_trigger(buys[-1].price, next_drop_pct(config, rung_index))
    avg = average_cost(buys)
    sell_above = sell_trigger(avg, config.sell_profit_pct) if avg is not None else None
    thresholds = {"buy_trigger": buy_below, "sell_trigger": sell_above}

    if sell_above is not None and price >= sell_above:
        return LadderDecision(LadderAction.SELL_ALL, rung_index, **thresholds)

    suppressed = (
        config.no_buy_zone_enabled and upper_band is not None and price > upper_band
    )
    within_cap = config.max_rungs == 0 or rung_index < config.max_rungs
    wants_buy = price <= buy_below

    if wants_buy and within_cap and not suppressed and not paused:
        return LadderDecision(
            LadderAction.RUNG_BUY,
            rung_index,
            native_amount=next_rung_native(config, rung_index),
            **thresholds,
        )
    if not within_cap:
        return LadderDecision(LadderAction.HOLD_CAPPED, rung_index, **thresholds)
    if wants_buy and paused:
        return LadderDecision(LadderAction.HOLD_PAUSED, rung_index, **thresholds)
    if wants_buy and suppressed:
        return LadderDecision(LadderAction.HOLD_NO_BUY_ZONE, rung_index, **thresholds)
    return LadderDecision(LadderAction.HOLD, rung_index, **thresholds)


def ladder_preview(config: DcaLadderConfig, rungs: int | None = None) -> LadderPreview:
    """Rung sizes, total commitment and the drawdown the ladder absorbs.

    ``rungs`` defaults to ``max_rungs``; an unbounded ladder previews nothing
    unless a count is given.
    """
    count = config.max_rungs if rungs is None else rungs
    sizes = tuple(next_rung_native(config, k) for k in range(count))
    price_factor = Decimal("1")
    for k in range(count):
        price_factor *= Decimal("1") - next_drop_pct(config, k) / Decimal("100")
    return LadderPreview(
        rungs=sizes,
        total_native=sum(sizes),
        absorbed_drop_pct=(Decimal("1") - price_factor) * Decimal("100"),
        bounded=config.max_rungs > 0,
    )


def rolling_pnl_summary(
    sells: Sequence[SellSummary],
    *,
    now: float,
    window_hours: Decimal = Decimal("12"),
) -> PnlSummary | None:
    horizon = now - float(window_hours) * 3600
    recent = [sell for sell in sells if sell.timestamp >= horizon]
    if not recent:
        return None
    profit_quote = sum((sell.profit_quote for sell in recent), Decimal("0"))
    profit_native = sum((sell.profit_native for sell in recent), Decimal("0"))
    cost_quote = sum(
        (
            sell.profit_quote / (sell.profit_pct / Decimal("100") or Decimal("1"))
            for sell in recent
        ),
        Decimal("0"),
    )
    pct = Decimal("0") if cost_quote == 0 else profit_quote / cost_quote * Decimal("100")
    return PnlSummary(profit_quote, profit_native, pct, len(recent))


def is_benign_simulation_error(exc: BaseException) -> bool:
    return BENIGN_SIMULATION_ERROR_CODE in str(exc)


@dataclass
class LadderContext:
    """Everything one ladder run needs; built once by the runner."""

    config: DcaLadderConfig
    store: StateStore
    notifier: NotificationRouter
    swap: SwapClient
    chain: ChainClient
    pairs: PairClient
    price_feed: NativePriceFeed
    tip_jar: TipJar
    wallet_address: str
    signer: TransactionSigner | None = None
    trade_log: TradeLog | None = None
    confirm: Callable[[ChainClient, str], Awaitable[bool]] = wait_for_confirmation
    clock: Callable[[], float] = time.time


@dataclass
class _RuntimeFlags:
    paused_for_funds: bool = False
    last_tick_time: float = 0.0
    last_native_balance: int | None = None
    own_signatures: deque[str] = field(default_factory=lambda: deque(maxlen=64))


class DcaLadderStrategy:
    def __init__(self, context: LadderContext) -> None:
        self.ctx = context
        self.config = context.config
        self.state = LadderState()
        self.indicator = VolatilityBand(
            self.config.indicator_period, self.config.indicator_spread_multiplier
        )
        self.asset_symbol = self.config.pair_address[:6]
        self.quote_symbol = "SOL"
        self.token_decimals = DEFAULT_TOKEN_DECIMALS
        self._flags = _RuntimeFlags()

    @property
    def paused_for_funds(self) -> bool:
        return self._flags.paused_for_funds

    @property
    def monitor_only(self) -> bool:
        return self.config.mode != "live"

    @property
    def tracks_native_balance(self) -> bool:
        return self.config.verbose and self.ctx.notifier.wants(EventKind.BALANCE)

    async def notify(self, kind: EventKind, message: str) -> None:
        await self.ctx.notifier.send(kind, message)

    def save_state(self) -> None:
        self.ctx.store.save(self.state)

    async def initialize(self) -> None:
        """Load the ledger, resolve token metadata and announce the ladder."""
        self.state = self.ctx.store.load()
        self._flags.last_tick_time = self.ctx.clock()

        try:
            self.token_decimals = await self.ctx.chain.get_token_decimals(
                self.config.token_mint
            )
            if self.config.verbose:
                await self.notify(
                    EventKind.START, f"ℹ️ Token decimals: {self.token_decimals}"
                )
        except COLLABORATOR_ERRORS as exc:
            LOGGER.warning("Token decimals lookup failed: %s", exc)
            await self.notify(
                EventKind.START,
                f"⚠️ Couldn't fetch decimals, using {DEFAULT_TOKEN_DECIMALS}",
            )

        previous = self.state.tracked_asset_id
        if previous and previous != self.config.token_mint:
            await self.notify(
                EventKind.START,
                f"🔄 Token changed ({previous[:4]}… → {self.config.token_mint[:4]}…)"
                " — ladder reset",
            )
            self.state.switch_asset(self.config.token_mint)
        self.state.tracked_asset_id = self.config.token_mint
        self.save_state()

        try:
            pair = await self.ctx.pairs.get_pair(self.config.pair_address)
            self.asset_symbol = pair.base_symbol
            self.quote_symbol = pair.quote_symbol
            await self.notify(EventKind.START, f"📊 Trading: {pair.label}")
        except COLLABORATOR_ERRORS as exc:
            LOGGER.warning(
                "Pair lookup failed for %s: %s", self.config.pair_address, exc
            )
            await self.notify(
                EventKind.START,
                f"⚠️ Pair metadata lookup failed, showing {self.asset_symbol}",
            )

        await self.notify(EventKind.START, self.describe_ladder())

        if self.tracks_native_balance:
            self._flags.last_native_balance = await self.ctx.chain.get_balance(
                self.ctx.wallet_address
            )

        if self.monitor_only:
            await self.notify(EventKind.START, "👀 DCA bot watching (monitor mode)")
        else:
            await self.notify(EventKind.START, "🚀 DCA bot live")

    def describe_ladder(self) -> str:
        cfg = self.config
        if cfg.max_rungs == 0:
            return (
                "📐 Ladder Mode: Buy till you're dry 🙈"
                f" • Vol×{cfg.volume_multiplier} • Δ%×{cfg.drop_multiplier}"
            )
        preview = ladder_preview(cfg)
        total_sol = Decimal(preview.total_native) / Decimal(LAMPORTS_PER_SOL)
        return (
            f"📐 Ladder Mode: {cfg.max_rungs} rungs • Vol×{cfg.volume_multiplier}"
            f" • Δ%×{cfg.drop_multiplier} • Total ≈ {total_sol:.3f} SOL"
            f" • Absorbs ≈ {preview.absorbed_drop_pct:.1f} %"
        )

    async def tick(self) -> LadderDecision | None:
        """Run one decision cycle.

        Returns the decision taken, or None when the tick ended early (ledger
        reset or benign simulation error). Collaborator and execution errors
        propagate to the caller with the ledger unchanged.
        """
        try:
            return await self._tick()
        except Exception as exc:
            if not is_benign_simulation_error(exc):
                raise
            LOGGER.info("Benign simulation error ignored: %s", exc)
            await self.notify(
                EventKind.TICK,
                f"⚠️ Benign {BENIGN_SIMULATION_ERROR_CODE} simulation error – ignored",
            )
            return None

    async def _tick(self) -> LadderDecision | None:
        now = self.ctx.clock()

        if self.config.detect_manual_transfers and self.state.buys:
            await self._check_manual_transfer()

        if await self._underflow_reset():
            self._flags.last_tick_time = now
            return None

        native_price = await self.ctx.price_feed.native_price_quote()
        price = await self.current_price(native_price)
        self.indicator.observe(price)
        await self.notify(EventKind.TICK, f"🪙 {self.asset_symbol} • ${price:.6f}")

        if self.tracks_native_balance:
            await self._check_native_balance()

        decision = decide_action(
            self.config,
            self.state.buys,
            price,
            upper_band=self.indicator.upper_band(),
            paused=self._flags.paused_for_funds,
        )
        LOGGER.debug("Decision at %s: %s", price, decision)

        if decision.buy_trigger is not None and decision.sell_trigger is not None:
            await self.notify(
                EventKind.TICK,
                f"💹 ${price:.5f} | Buy<{decision.buy_trigger:.5f}"
                f" Sell>{decision.sell_trigger:.5f}",
            )
            if self.config.verbose:
                await self._announce_next_rung(decision.rung_index)

        if self.monitor_only:
            await self._report_monitor(decision)
        else:
            await self._execute(decision, price, native_price)

        summary = rolling_pnl_summary(
            self.state.sells,
            now=self.ctx.clock(),
            window_hours=self.config.pnl_window_hours,
        )
        if summary is not None:
            await self.notify(EventKind.TICK, self.format_pnl(summary))

        self._flags.last_tick_time = now
        return decision

    async def current_price(self, native_price: Decimal) -> Decimal:
        """Quote price per whole asset unit: one unit swapped to native, valued."""
        one_unit = 10**self.token_decimals
        quote = await self.ctx.swap.quote(
            self.config.token_mint, NATIVE_MINT, one_unit, self.config.slippage_cap_bps
        )
        return native_to_quote(quote.out_amount, native_price)

    async def _execute(
        self, decision: LadderDecision, price: Decimal, native_price: Decimal
    ) -> None:
        action = decision.action
        if action is LadderAction.FIRST_BUY:
            await self.notify(EventKind.TICK, "🔰 First buy")
            await self._buy(decision.native_amount, price, native_price)
        elif action is LadderAction.RUNG_BUY:
            await self._buy(decision.native_amount, price, native_price)
        elif action is LadderAction.SELL_ALL:
            await self._sell_all(price, native_price)
        elif action is LadderAction.HOLD_PAUSED:
            await self.notify(EventKind.TICK, "⏸️ Buy-ladder paused — out of SOL")
        elif action is LadderAction.HOLD_CAPPED:
            await self.notify(EventKind.TICK, "⏸️ Buy-cap reached — waiting to sell")
        elif action is LadderAction.HOLD_NO_BUY_ZONE:
            await self.notify(
                EventKind.TICK, "🚧 Price above volatility band — buy suppressed"
            )

    async def _report_monitor(self, decision: LadderDecision) -> None:
        if decision.is_buy:
            sol = Decimal(decision.native_amount) / Decimal(LAMPORTS_PER_SOL)
            message = f"MONITOR MODE: Would buy {sol:.4f} SOL of {self.asset_symbol}"
        elif decision.action is LadderAction.SELL_ALL:
            message = f"MONITOR MODE: Would sell all {self.asset_symbol}"
        else:
            return
        LOGGER.info(message)
        await self.notify(EventKind.TICK, f"👀 {message}")

    async def _buy(self, lamports: int, price: Decimal, native_price: Decimal) -> None:
        balance = await self.ctx.chain.get_balance(self.ctx.wallet_address)
        if balance < lamports:
            await self._pause_for_funds(
                f"balance {balance} < rung {lamports} lamports"
            )
            return

        quote = await self.ctx.swap.quote(
            NATIVE_MINT, self.config.token_mint, lamports, self.config.slippage_cap_bps
        )
        try:
            signature = await self.ctx.swap.execute(quote, self._require_signer())
        except InsufficientFundsError as exc:
            await self._pause_for_funds(str(exc))
            return
        self._flags.own_signatures.append(signature)
        await self.notify(EventKind.BUY, f"✅ Buy {self.asset_symbol} sent: {signature}")

        if not await self.ctx.confirm(self.ctx.chain, signature):
            raise ExecutionError(f"Buy {signature} failed or timed out")

        self.state.record_buy(
            BuyRecord(price=price, native_amount=lamports, asset_amount=quote.out_amount)
        )
        self.save_state()

        received = self.human(quote.out_amount)
        await self.notify(
            EventKind.BUY,
            f"✅ Buy confirmed – {received:.4f} {self.asset_symbol} tokens @ ${price:.4f}",
        )
        if self.ctx.trade_log is not None:
            self.ctx.trade_log.record_buy(
                symbol=self.asset_symbol,
                tx_id=signature,
                asset_amount=received,
                price=price,
                native_spent=Decimal(lamports) / Decimal(LAMPORTS_PER_SOL),
                native_ref_price=native_price,
            )

    async def _pause_for_funds(self, reason: str) -> None:
        LOGGER.warning("Pausing buys for insufficient funds: %s", reason)
        if self._flags.paused_for_funds:
            return
        self._flags.paused_for_funds = True
        await self.notify(EventKind.BUY, "‼️ Not enough SOL — pausing further buys")

    async def _sell_all(self, price: Decimal, native_price: Decimal) -> None:
        recorded_raw = self.state.total_asset_amount()
        on_chain_raw = await self.ctx.chain.get_token_balance(
            self.ctx.wallet_address, self.config.token_mint
        )
        sell_raw = min(on_chain_raw, recorded_raw)
        if sell_raw == 0:
            self.state.clear_buys()
            self.save_state()
            await self.notify(EventKind.TICK, "⚠️ No tokens to sell—DCA ladder reset")
            return

        quote = await self.ctx.swap.quote(
            self.config.token_mint, NATIVE_MINT, sell_raw, self.config.slippage_cap_bps
        )
        cost_native = self.state.total_native_amount()
        cost_quote = native_to_quote(cost_native, native_price)
        worst_case_quote = native_to_quote(quote.worst_case_out_amount, native_price)
        needed_quote = cost_quote * (
            Decimal("1")
            + self.config.sell_profit_pct / Decimal("100")
            + quote.price_impact_pct / Decimal("100")
        )
        if worst_case_quote < needed_quote:
            await self.notify(
                EventKind.TICK,
                f"⚠️ Skipping sell: worst-case ${worst_case_quote:.4f}"
                f" < target ${needed_quote:.4f}",
            )
            return

        signature = await self.ctx.swap.execute(quote, self._require_signer())
        self._flags.own_signatures.append(signature)
        await self.notify(EventKind.SELL, f"✅ Sell sent: {signature}")
        if not await self.ctx.confirm(self.ctx.chain, signature):
            raise ExecutionError(f"Sell {signature} failed or timed out")

        native_out = Decimal(quote.out_amount) / Decimal(LAMPORTS_PER_SOL)
        quote_out = native_out * native_price
        profit_quote = quote_out - cost_quote
        profit_native = native_out - Decimal(cost_native) / Decimal(LAMPORTS_PER_SOL)
        profit_pct = (
            Decimal("0") if cost_quote == 0 else profit_quote / cost_quote * Decimal("100")
        )
        summary = SellSummary(
            timestamp=self.ctx.clock(),
            profit_quote=profit_quote,
            profit_native=profit_native,
            profit_pct=profit_pct,
        )
        self.state.record_sell(summary)
        self._flags.paused_for_funds = False
        tip_added = self.ctx.tip_jar.accrue(self.state, profit_quote, native_price)
        self.save_state()

        emoji = "📈" if profit_quote >= 0 else "📉"
        await self.notify(
            EventKind.SELL,
            f"💰 Sold {self.human(sell_raw):.4f} {self.asset_symbol} tokens"
            f" → {native_out:.3f} SOL (~${quote_out:.2f})\n"
            f"{emoji} PnL: {profit_pct:.2f}% | {profit_native:.3f} SOL"
            f" | ${profit_quote:.2f}",
        )
        if self.ctx.trade_log is not None:
            self.ctx.trade_log.record_sell(
                symbol=self.asset_symbol,
                tx_id=signature,
                asset_amount=self.human(sell_raw),
                price=price,
                native_received=native_out,
                native_ref_price=native_price,
                pnl_pct=profit_pct,
                pnl_quote=profit_quote,
            )
        window = rolling_pnl_summary(
            self.state.sells,
            now=self.ctx.clock(),
            window_hours=self.config.pnl_window_hours,
        )
        if window is not None:
            await self.notify(EventKind.SELL, self.format_pnl(window))

        if tip_added > 0 or self.state.pending_tip_native > 0:
            await self._settle_tip(native_price)

    async def _settle_tip(self, native_price: Decimal) -> None:
        outcome = await self.ctx.tip_jar.maybe_flush(
            self.state, native_price, self.ctx.signer
        )
        pending_sol = Decimal(outcome.amount_native) / Decimal(LAMPORTS_PER_SOL)
        if outcome.status == "sent":
            self.save_state()
            await self.notify(
                EventKind.TICK,
                f"🙏 Sent tip of {pending_sol:.6f} SOL (tx: {outcome.signature})",
            )
        elif outcome.status == "failed":
            await self.notify(
                EventKind.TICK, "⚠️ Tip transfer failed, will retry next sell"
            )
        else:
            threshold = self.ctx.tip_jar.config.flush_threshold_quote
            await self.notify(
                EventKind.TICK,
                f"💾 Tip accrued: {pending_sol:.6f} SOL (pending until ≥ ${threshold})",
            )

    async def _check_manual_transfer(self) -> None:
        signature = await self.ctx.chain.find_outbound_transfer(
            self.ctx.wallet_address,
            self.config.token_mint,
            since=self._flags.last_tick_time,
            exclude=tuple(self._flags.own_signatures),
        )
        if signature is None:
            return
        LOGGER.info("Manual transfer %s detected; clearing buys.", signature)
        self.state.clear_buys()
        self.save_state()
        await self.notify(
            EventKind.SELL,
            "🔄 Detected manual token transfer (sale); resetting DCA ladder",
        )

    async def _underflow_reset(self) -> bool:
        """Clear buys when the wallet holds well under the recorded amount."""
        expected_raw = self.state.total_asset_amount()
        if expected_raw == 0:
            return False
        on_chain_raw = await self.ctx.chain.get_token_balance(
            self.ctx.wallet_address, self.config.token_mint
        )
        if Decimal(on_chain_raw) >= self.config.underflow_tolerance * Decimal(expected_raw):
            return False
        await self.notify(
            EventKind.TICK,
            f"⚠️ Underflow detected: on-chain {self.human(on_chain_raw)} {self.asset_symbol}"
            f" < ledger {self.human(expected_raw)} — resetting ladder",
        )
        self.state.clear_buys()
        self.save_state()
        return True

    async def _check_native_balance(self) -> None:
        lamports = await self.ctx.chain.get_balance(self.ctx.wallet_address)
        previous = self._flags.last_native_balance
        if previous is not None and lamports != previous:
            diff = Decimal(lamports - previous) / Decimal(LAMPORTS_PER_SOL)
            await self.notify(
                EventKind.BALANCE, f"ℹ️ Wallet balance changed by {diff:.3f} SOL"
            )
        self._flags.last_native_balance = lamports

    async def _announce_next_rung(self, rung_index: int) -> None:
        if self.config.max_rungs and rung_index >= self.config.max_rungs:
            return
        next_sol = Decimal(next_rung_native(self.config, rung_index)) / Decimal(
            LAMPORTS_PER_SOL
        )
        remaining = Decimal(self._flags.last_native_balance or 0) / Decimal(
            LAMPORTS_PER_SOL
        )
        await self.notify(
            EventKind.TICK,
            f"📈 Next buy (SOL): {next_sol:.3f} | Remaining ≈ {remaining:.3f} SOL",
        )

    def _require_signer(self) -> TransactionSigner:
        if self.ctx.signer is None:
            raise ExecutionError("No signer configured; cannot submit transactions.")
        return self.ctx.signer

    def human(self, raw: int) -> Decimal:
        return Decimal(raw) / Decimal(10**self.token_decimals)

    def format_pnl(self, summary: PnlSummary) -> str:
        return (
            f"⏱ {self.config.pnl_window_hours}h PnL: {summary.profit_pct:.2f}%"
            f" | {summary.profit_native:.3f} SOL | ${summary.profit_quote:.2f}"
        )


def describe() -> str:
    return "\n".join(
        [
            "DCA ladder strategy:",
            "- Buys a first rung, then larger rungs on each configured drawdown.",
            "- Sells the whole position once price clears average cost plus profit.",
            "- Skips buys above the volatility band when the no-buy zone is on.",
            "- Pauses buying when the wallet runs out of SOL until the next sell.",
        ]
    )
