import random
from decimal import Decimal
from fractions import Fraction

import pytest

from engine.state import BuyRecord, LadderState, SellSummary, StateStore
from solana_client.async_rest import HttpClientError
from solana_client.constants import LAMPORTS_PER_SOL, NATIVE_MINT
from solana_client.models import PairInfo, SwapQuote
from solana_client.rpc import InsufficientFundsError, RpcError
from strategies.dca_ladder import (
    DcaLadderConfig,
    DcaLadderStrategy,
    ExecutionError,
    LadderAction,
    LadderContext,
    average_cost,
    buy_trigger,
    decide_action,
    is_benign_simulation_error,
    ladder_preview,
    next_drop_pct,
    next_rung_native,
    rolling_pnl_summary,
    sell_trigger,
)
from utils.notifications import EventKind
from utils.tip_jar import TipJar, TipJarConfig
from utils.trade_log import TradeLog

MINT = "MintB11111111111111111111111111111111111111"
OLD_MINT = "MintA11111111111111111111111111111111111111"
PAIR = "Pair111111111111111111111111111111111111111"
WALLET = "Wallet1111111111111111111111111111111111111"
NOW = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeChain:
    def __init__(self, balance: int = 10 * LAMPORTS_PER_SOL) -> None:
        self.balance = balance
        self.token_balance = 0
        self.decimals = 6
        self.outbound: str | None = None
        self.outbound_calls: list[dict] = []
        self.transfers: list[tuple[str, int]] = []
        self.balance_calls = 0

    async def get_balance(self, owner: str) -> int:
        self.balance_calls += 1
        return self.balance

    async def get_token_balance(self, owner: str, mint: str) -> int:
        return self.token_balance

    async def get_token_decimals(self, mint: str) -> int:
        return self.decimals

    async def get_signature_status(self, signature: str):
        return None

    async def transfer_native(self, signer, destination: str, lamports: int) -> str:
        self.transfers.append((destination, lamports))
        return "tip-sig"

    async def find_outbound_transfer(
        self, owner, mint, *, since, exclude=(), limit=20
    ):
        self.outbound_calls.append({"since": since, "exclude": tuple(exclude)})
        return self.outbound


class FakeSwap:
    def __init__(self, chain: FakeChain, lamports_per_token: int) -> None:
        self.chain = chain
        self.lamports_per_token = lamports_per_token
        self.worst_case_ratio = Decimal("1")
        self.price_impact_pct = Decimal("0")
        self.execute_error: Exception | None = None
        self.executed: list[SwapQuote] = []

    async def quote(self, input_mint, output_mint, amount, slippage_bps=None):
        unit = 10**self.chain.decimals
        if input_mint == NATIVE_MINT:
            out = amount * unit // self.lamports_per_token
        else:
            out = amount * self.lamports_per_token // unit
        worst = int(Decimal(out) * self.worst_case_ratio)
        return SwapQuote.from_payload(
            {
                "inputMint": input_mint,
                "outputMint": output_mint,
                "inAmount": str(amount),
                "outAmount": str(out),
                "otherAmountThreshold": str(worst),
                "priceImpactPct": str(self.price_impact_pct),
                "slippageBps": slippage_bps or 0,
            }
        )

    async def execute(self, quote, signer) -> str:
        if self.execute_error is not None:
            raise self.execute_error
        self.executed.append(quote)
        if quote.input_mint == NATIVE_MINT:
            self.chain.balance -= quote.in_amount
            self.chain.token_balance += quote.out_amount
        else:
            self.chain.token_balance -= quote.in_amount
            self.chain.balance += quote.out_amount
        return f"sig-{len(self.executed)}"


class FakePairs:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail

    async def get_pair(self, pair_address: str) -> PairInfo:
        if self.fail:
            raise HttpClientError("pair lookup down")
        return PairInfo(pair_address=pair_address, base_symbol="BONK", quote_symbol="SOL")


class FakePriceFeed:
    def __init__(self, price: Decimal = Decimal("100")) -> None:
        self.price = price

    async def native_price_quote(self) -> Decimal:
        return self.price


class FakeSigner:
    public_key = WALLET

    def sign_transaction(self, serialized: bytes) -> bytes:
        return serialized

    def build_transfer(self, destination, lamports, recent_blockhash) -> bytes:
        return b"transfer"


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[EventKind, str]] = []
        self.muted: set[EventKind] = set()

    def wants(self, kind: EventKind) -> bool:
        return kind not in self.muted

    async def send(self, kind: EventKind, message: str) -> None:
        self.events.append((kind, message))

    def messages(self, kind: EventKind | None = None) -> list[str]:
        return [msg for k, msg in self.events if kind is None or k == kind]

    async def close(self) -> None:
        return None


def _config(**overrides) -> DcaLadderConfig:
    params = {
        "token_mint": MINT,
        "pair_address": PAIR,
        "initial_rung_native": 10_000_000,
    }
    params.update(overrides)
    return DcaLadderConfig(**params)


def _build_strategy(tmp_path, *, confirm_result=True, lamports_per_token=1_000_000, **overrides):
    chain = FakeChain()
    swap = FakeSwap(chain, lamports_per_token)
    notifier = RecordingNotifier()
    confirmations: list[str] = []

    async def confirm(_chain, signature: str) -> bool:
        confirmations.append(signature)
        return confirm_result

    config = _config(**overrides)
    context = LadderContext(
        config=config,
        store=StateStore(tmp_path / "state.json"),
        notifier=notifier,
        swap=swap,
        chain=chain,
        pairs=FakePairs(),
        price_feed=FakePriceFeed(),
        tip_jar=TipJar(chain, TipJarConfig(), mode=config.mode, confirm=confirm),
        wallet_address=WALLET,
        signer=FakeSigner() if config.mode == "live" else None,
        trade_log=TradeLog(tmp_path),
        confirm=confirm,
        clock=FakeClock(),
    )
    return DcaLadderStrategy(context), chain, swap, notifier


# --- pure policy -----------------------------------------------------------


@pytest.mark.parametrize(
    "initial, multiplier, rungs",
    [
        (10_000_000, Decimal("2"), 3),
        (1_000_000_000, Decimal("1.5"), 4),
        (12_500_000, Decimal("1"), 5),
    ],
)
def test_total_commitment_is_geometric(initial, multiplier, rungs) -> None:
    config = _config(initial_rung_native=initial, volume_multiplier=multiplier)

    total = sum(next_rung_native(config, k) for k in range(rungs))

    if multiplier == 1:
        expected = initial * rungs
    else:
        expected = Decimal(initial) * (multiplier**rungs - 1) / (multiplier - 1)
    assert total == expected


def test_rung_sizes_and_drop_schedule() -> None:
    config = _config(
        volume_multiplier=Decimal("2"),
        base_drop_pct=Decimal("10"),
        drop_multiplier=Decimal("1"),
        max_rungs=3,
    )

    assert [next_rung_native(config, k) for k in range(3)] == [
        10_000_000,
        20_000_000,
        40_000_000,
    ]
    for k in range(1, 3):
        assert buy_trigger(Decimal("1.00"), next_drop_pct(config, k)) == Decimal("0.9")


def test_rung_size_is_floored() -> None:
    config = _config(initial_rung_native=10, volume_multiplier=Decimal("1.5"))

    assert next_rung_native(config, 1) == 15
    assert next_rung_native(config, 2) == 22


def test_drop_multiplier_scales_each_rung() -> None:
    config = _config(base_drop_pct=Decimal("5"), drop_multiplier=Decimal("2"))

    assert next_drop_pct(config, 0) == Decimal("5")
    assert next_drop_pct(config, 3) == Decimal("40")


def test_average_cost_and_sell_trigger_for_two_buys() -> None:
    buys = [
        BuyRecord(Decimal("1.00"), 10_000_000, 1_000),
        BuyRecord(Decimal("0.90"), 20_000_000, 1_000),
    ]
    config = _config(sell_profit_pct=Decimal("5"))

    avg = average_cost(buys)

    assert avg == Decimal("0.95")
    assert sell_trigger(avg, config.sell_profit_pct) == Decimal("0.9975")
    assert decide_action(config, buys, Decimal("0.997")).action is LadderAction.HOLD
    assert decide_action(config, buys, Decimal("0.9975")).action is LadderAction.SELL_ALL
    assert decide_action(config, buys, Decimal("1.00")).action is LadderAction.SELL_ALL


def test_average_cost_is_quantity_weighted() -> None:
    rng = random.Random(20240601)
    for _ in range(200):
        buys = [
            BuyRecord(
                price=Decimal(rng.randint(1, 10_000_000)) / Decimal(1_000_000),
                native_amount=rng.randint(1, 10**9),
                asset_amount=rng.randint(1, 10**15),
            )
            for _ in range(rng.randint(1, 8))
        ]
        expected = sum(Fraction(b.price) * b.asset_amount for b in buys) / sum(
            b.asset_amount for b in buys
        )

        avg = average_cost(buys)

        assert abs(Fraction(avg) - expected) < Fraction(1, 10**18)


def test_average_cost_without_position() -> None:
    assert average_cost([]) is None


def test_first_buy_when_empty_even_if_paused() -> None:
    decision = decide_action(_config(), [], Decimal("5"), paused=True)

    assert decision.action is LadderAction.FIRST_BUY
    assert decision.native_amount == 10_000_000


def test_rung_buy_at_trigger() -> None:
    buys = [BuyRecord(Decimal("1"), 10_000_000, 1_000)]

    decision = decide_action(_config(), buys, Decimal("0.9"))

    assert decision.action is LadderAction.RUNG_BUY
    assert decision.native_amount == 20_000_000
    assert decision.buy_trigger == Decimal("0.9")


def test_paused_ladder_holds() -> None:
    buys = [BuyRecord(Decimal("1"), 10_000_000, 1_000)]

    decision = decide_action(_config(), buys, Decimal("0.5"), paused=True)

    assert decision.action is LadderAction.HOLD_PAUSED


def test_no_buy_zone_suppresses_buy_above_band() -> None:
    buys = [BuyRecord(Decimal("1"), 10_000_000, 1_000)]
    config = _config(no_buy_zone_enabled=True)

    suppressed = decide_action(config, buys, Decimal("0.8"), upper_band=Decimal("0.7"))
    allowed = decide_action(config, buys, Decimal("0.8"), upper_band=Decimal("0.85"))
    no_band = decide_action(config, buys, Decimal("0.8"), upper_band=None)
    disabled = decide_action(
        _config(no_buy_zone_enabled=False), buys, Decimal("0.8"), upper_band=Decimal("0.7")
    )

    assert suppressed.action is LadderAction.HOLD_NO_BUY_ZONE
    assert allowed.action is LadderAction.RUNG_BUY
    assert no_band.action is LadderAction.RUNG_BUY
    assert disabled.action is LadderAction.RUNG_BUY


def test_cap_holds_until_sell() -> None:
    buys = [
        BuyRecord(Decimal("1"), 10_000_000, 1_000),
        BuyRecord(Decimal("0.9"), 20_000_000, 1_000),
    ]
    config = _config(max_rungs=2)

    assert decide_action(config, buys, Decimal("0.1")).action is LadderAction.HOLD_CAPPED
    assert decide_action(config, buys, Decimal("2")).action is LadderAction.SELL_ALL


def test_ladder_preview_totals() -> None:
    config = _config(max_rungs=3, base_drop_pct=Decimal("10"))

    preview = ladder_preview(config)

    assert preview.rungs == (10_000_000, 20_000_000, 40_000_000)
    assert preview.total_native == 70_000_000
    assert preview.absorbed_drop_pct == Decimal("27.100")
    assert preview.bounded


def test_rolling_pnl_summary_uses_window() -> None:
    sells = [
        SellSummary(NOW - 13 * 3600, Decimal("100"), Decimal("1"), Decimal("50")),
        SellSummary(NOW - 100, Decimal("10"), Decimal("0.1"), Decimal("10")),
        SellSummary(NOW - 200, Decimal("-5"), Decimal("-0.05"), Decimal("-5")),
    ]

    summary = rolling_pnl_summary(sells, now=NOW, window_hours=Decimal("12"))

    assert summary is not None
    assert summary.sells == 2
    assert summary.profit_quote == Decimal("5")
    assert summary.profit_native == Decimal("0.05")
    assert summary.profit_pct == Decimal("2.5")


def test_rolling_pnl_summary_empty_window() -> None:
    old = [SellSummary(NOW - 50 * 3600, Decimal("1"), Decimal("0"), Decimal("1"))]

    assert rolling_pnl_summary(old, now=NOW) is None


def test_benign_simulation_error_detection() -> None:
    assert is_benign_simulation_error(RpcError("custom program error: 0x1771"))
    assert not is_benign_simulation_error(RpcError("custom program error: 0x1"))


# --- strategy ticks --------------------------------------------------------


@pytest.mark.asyncio
async def test_initialize_resets_on_token_switch(tmp_path) -> None:
    StateStore(tmp_path / "state.json").save(
        LadderState(
            tracked_asset_id=OLD_MINT,
            buys=[BuyRecord(Decimal("1"), 10_000_000, 1_000)],
            sells=[SellSummary(NOW, Decimal("1"), Decimal("0.01"), Decimal("2"))],
            pending_tip_native=5_000,
        )
    )
    strategy, _, _, notifier = _build_strategy(tmp_path)

    await strategy.initialize()

    persisted = StateStore(tmp_path / "state.json").load()
    assert persisted.tracked_asset_id == MINT
    assert persisted.buys == []
    assert persisted.sells == []
    assert persisted.pending_tip_native == 0
    assert any("Token changed" in msg for msg in notifier.messages(EventKind.START))
    assert strategy.asset_symbol == "BONK"


@pytest.mark.asyncio
async def test_initialize_keeps_state_for_same_token(tmp_path) -> None:
    StateStore(tmp_path / "state.json").save(
        LadderState(
            tracked_asset_id=MINT,
            buys=[BuyRecord(Decimal("1"), 10_000_000, 1_000)],
            pending_tip_native=5_000,
        )
    )
    strategy, _, _, _ = _build_strategy(tmp_path)

    await strategy.initialize()

    assert len(strategy.state.buys) == 1
    assert strategy.state.pending_tip_native == 5_000


@pytest.mark.asyncio
async def test_initialize_falls_back_when_pair_lookup_fails(tmp_path) -> None:
    strategy, _, _, notifier = _build_strategy(tmp_path)
    strategy.ctx.pairs = FakePairs(fail=True)

    await strategy.initialize()

    assert strategy.asset_symbol == PAIR[:6]
    assert any("lookup failed" in msg for msg in notifier.messages(EventKind.START))
    assert notifier.messages(EventKind.START)[-1] == "🚀 DCA bot live"


@pytest.mark.asyncio
async def test_first_tick_buys_and_persists(tmp_path) -> None:
    strategy, chain, swap, notifier = _build_strategy(tmp_path)
    await strategy.initialize()

    decision = await strategy.tick()

    assert decision.action is LadderAction.FIRST_BUY
    assert strategy.state.buys == [BuyRecord(Decimal("0.100"), 10_000_000, 10_000_000)]
    assert StateStore(tmp_path / "state.json").load().buys == strategy.state.buys
    assert chain.token_balance == 10_000_000
    assert any("Buy confirmed" in msg for msg in notifier.messages(EventKind.BUY))
    rows = (tmp_path / "BONK_trade_log.csv").read_text(encoding="utf-8").splitlines()
    assert rows[0].startswith("timestamp,symbol,event,tx_id")
    assert ",BUY,sig-1," in rows[1]
    assert rows[1].endswith(",,")


@pytest.mark.asyncio
async def test_rung_buy_after_drop(tmp_path) -> None:
    strategy, _, swap, _ = _build_strategy(tmp_path)
    await strategy.initialize()
    await strategy.tick()

    swap.lamports_per_token = 900_000
    decision = await strategy.tick()

    assert decision.action is LadderAction.RUNG_BUY
    assert [buy.native_amount for buy in strategy.state.buys] == [10_000_000, 20_000_000]
    assert strategy.state.buys[-1].price == Decimal("0.09")


@pytest.mark.asyncio
async def test_unconfirmed_buy_leaves_ledger_untouched(tmp_path) -> None:
    strategy, _, _, _ = _build_strategy(tmp_path, confirm_result=False)
    await strategy.initialize()
    before = (tmp_path / "state.json").read_text(encoding="utf-8")

    with pytest.raises(ExecutionError):
        await strategy.tick()

    assert strategy.state.buys == []
    assert (tmp_path / "state.json").read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_benign_simulation_error_is_informational(tmp_path) -> None:
    strategy, _, swap, notifier = _build_strategy(tmp_path)
    await strategy.initialize()
    swap.execute_error = RpcError(
        "sendTransaction failed: custom program error: 0x1771"
    )

    result = await strategy.tick()

    assert result is None
    assert strategy.state.buys == []
    assert any("0x1771" in msg for msg in notifier.messages(EventKind.TICK))


@pytest.mark.asyncio
async def test_other_execution_errors_propagate(tmp_path) -> None:
    strategy, _, swap, _ = _build_strategy(tmp_path)
    await strategy.initialize()
    swap.execute_error = RpcError("sendTransaction failed: blockhash not found")

    with pytest.raises(RpcError):
        await strategy.tick()

    assert strategy.state.buys == []


@pytest.mark.asyncio
async def test_low_balance_pauses_until_sell(tmp_path) -> None:
    strategy, chain, swap, notifier = _build_strategy(tmp_path)
    await strategy.initialize()
    await strategy.tick()

    chain.balance = 1_000
    swap.lamports_per_token = 900_000
    await strategy.tick()

    assert strategy.paused_for_funds
    assert len(strategy.state.buys) == 1
    assert "‼️ Not enough SOL — pausing further buys" in notifier.messages(EventKind.BUY)

    decision = await strategy.tick()
    assert decision.action is LadderAction.HOLD_PAUSED

    swap.lamports_per_token = 1_100_000
    decision = await strategy.tick()
    assert decision.action is LadderAction.SELL_ALL
    assert not strategy.paused_for_funds


@pytest.mark.asyncio
async def test_repeated_pause_notifies_once(tmp_path) -> None:
    strategy, chain, _, notifier = _build_strategy(tmp_path)
    await strategy.initialize()
    chain.balance = 1_000

    for _ in range(3):
        decision = await strategy.tick()
        assert decision.action is LadderAction.FIRST_BUY

    assert strategy.paused_for_funds
    assert notifier.messages(EventKind.BUY) == [
        "‼️ Not enough SOL — pausing further buys"
    ]

@pytest.mark.asyncio
async def test_insufficient_funds_from_execution_pauses(tmp_path) -> None:
    strategy, _, swap, _ = _build_strategy(tmp_path)
    await strategy.initialize()
    swap.execute_error = InsufficientFundsError("insufficient lamports 5, need 10")

    await strategy.tick()

    assert strategy.paused_for_funds
    assert strategy.state.buys == []


@pytest.mark.asyncio
async def test_sell_records_profit_and_accrues_tip(tmp_path) -> None:
    strategy, chain, swap, notifier = _build_strategy(tmp_path)
    await strategy.initialize()
    await strategy.tick()

    swap.lamports_per_token = 1_100_000
    decision = await strategy.tick()

    assert decision.action is LadderAction.SELL_ALL
    assert strategy.state.buys == []
    sell = strategy.state.sells[-1]
    assert sell.profit_quote == Decimal("0.1")
    assert sell.profit_native == Decimal("0.001")
    assert sell.profit_pct == Decimal("10")
    # 1% of $0.10 at $100/SOL
    assert strategy.state.pending_tip_native == 10_000
    assert chain.transfers == []
    assert any("Tip accrued" in msg for msg in notifier.messages(EventKind.TICK))
    persisted = StateStore(tmp_path / "state.json").load()
    assert persisted.buys == []
    assert persisted.pending_tip_native == 10_000
    rows = (tmp_path / "BONK_trade_log.csv").read_text(encoding="utf-8").splitlines()
    assert ",SELL,sig-2," in rows[2]
    assert rows[2].endswith(",10.00,0.10")


@pytest.mark.asyncio
async def test_sell_skipped_when_worst_case_below_target(tmp_path) -> None:
    strategy, _, swap, notifier = _build_strategy(tmp_path)
    await strategy.initialize()
    await strategy.tick()

    swap.lamports_per_token = 1_100_000
    swap.worst_case_ratio = Decimal("0.9")
    await strategy.tick()

    assert len(strategy.state.buys) == 1
    assert strategy.state.sells == []
    assert any("Skipping sell" in msg for msg in notifier.messages(EventKind.TICK))


@pytest.mark.asyncio
async def test_price_impact_raises_sell_target(tmp_path) -> None:
    strategy, _, swap, _ = _build_strategy(tmp_path)
    await strategy.initialize()
    await strategy.tick()

    swap.lamports_per_token = 1_100_000
    swap.price_impact_pct = Decimal("8")
    await strategy.tick()

    # needed 1.0 * (1 + 0.025 + 0.08) = 1.105 > worst case 1.10
    assert strategy.state.sells == []


@pytest.mark.asyncio
async def test_underflow_guard_clears_buys_only(tmp_path) -> None:
    strategy, chain, swap, notifier = _build_strategy(tmp_path)
    await strategy.initialize()
    await strategy.tick()
    strategy.state.sells.append(
        SellSummary(NOW - 10, Decimal("1"), Decimal("0.01"), Decimal("2"))
    )
    strategy.state.pending_tip_native = 777

    chain.token_balance = 8_999_999
    executed_before = len(swap.executed)
    result = await strategy.tick()

    assert result is None
    assert strategy.state.buys == []
    assert len(strategy.state.sells) == 1
    assert strategy.state.pending_tip_native == 777
    assert len(swap.executed) == executed_before
    assert any("Underflow detected" in msg for msg in notifier.messages(EventKind.TICK))


@pytest.mark.asyncio
async def test_balance_within_tolerance_keeps_ladder(tmp_path) -> None:
    strategy, chain, _, _ = _build_strategy(tmp_path)
    await strategy.initialize()
    await strategy.tick()

    chain.token_balance = 9_000_000
    decision = await strategy.tick()

    assert decision is not None
    assert len(strategy.state.buys) == 1


@pytest.mark.asyncio
async def test_manual_transfer_resets_buys(tmp_path) -> None:
    strategy, chain, _, notifier = _build_strategy(
        tmp_path, detect_manual_transfers=True
    )
    await strategy.initialize()
    await strategy.tick()

    chain.outbound = "manual-sig"
    await strategy.tick()

    assert chain.outbound_calls[-1]["exclude"] == ("sig-1",)
    assert any(
        "Detected manual token transfer" in msg
        for msg in notifier.messages(EventKind.SELL)
    )


@pytest.mark.asyncio
async def test_monitor_mode_never_executes(tmp_path) -> None:
    strategy, _, swap, notifier = _build_strategy(tmp_path, mode="monitor")
    await strategy.initialize()

    decision = await strategy.tick()

    assert decision.action is LadderAction.FIRST_BUY
    assert swap.executed == []
    assert strategy.state.buys == []
    assert any("MONITOR MODE" in msg for msg in notifier.messages(EventKind.TICK))


@pytest.mark.asyncio
async def test_verbose_mode_reports_balance_changes(tmp_path) -> None:
    strategy, chain, _, notifier = _build_strategy(tmp_path, verbose=True)
    await strategy.initialize()

    await strategy.tick()
    await strategy.tick()

    balance_events = notifier.messages(EventKind.BALANCE)
    assert balance_events == ["ℹ️ Wallet balance changed by -0.010 SOL"]


@pytest.mark.asyncio
async def test_verbose_balance_check_skipped_without_listener(tmp_path) -> None:
    strategy, chain, _, notifier = _build_strategy(tmp_path, verbose=True)
    notifier.muted.add(EventKind.BALANCE)
    await strategy.initialize()

    await strategy.tick()

    assert not strategy.tracks_native_balance
    assert chain.balance_calls == 1
    assert notifier.messages(EventKind.BALANCE) == []
