from decimal import Decimal

import pytest

from engine.state import LadderState
from utils.tip_jar import (
    TipJar,
    TipJarConfig,
    build_tip_jar,
    native_to_quote,
    quote_to_native,
)

DESTINATION = "Tip1111111111111111111111111111111111111111"


class FakeChain:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.transfers: list[tuple[str, int]] = []

    async def transfer_native(self, signer, destination, lamports) -> str:
        if self.error is not None:
            raise self.error
        self.transfers.append((destination, lamports))
        return "tip-sig"


class FakeSigner:
    public_key = "Wallet"


def _confirm_with(result: bool):
    async def confirm(_chain, _signature) -> bool:
        return result

    return confirm


def test_conversions_floor_to_lamports() -> None:
    assert native_to_quote(1_500_000_000, Decimal("100")) == Decimal("150")
    assert quote_to_native(Decimal("0.005"), Decimal("150")) == 33_333
    assert quote_to_native(Decimal("1"), Decimal("0")) == 0


def test_small_profit_accrues_below_threshold() -> None:
    state = LadderState(pending_tip_native=1_000)
    jar = TipJar(FakeChain(), TipJarConfig(flush_threshold_quote=Decimal("1")))

    # 1% of $50 is $0.50, below the $1 threshold
    added = jar.accrue(state, Decimal("50"), Decimal("100"))

    assert added == 5_000_000
    assert state.pending_tip_native == 5_001_000
    assert not jar.due(state, Decimal("100"))


def test_losses_accrue_nothing() -> None:
    state = LadderState()
    jar = TipJar(FakeChain(), TipJarConfig())

    assert jar.accrue(state, Decimal("-3"), Decimal("100")) == 0
    assert state.pending_tip_native == 0


@pytest.mark.asyncio
async def test_flush_not_due_keeps_pending() -> None:
    chain = FakeChain()
    state = LadderState(pending_tip_native=5_000_000)
    jar = TipJar(
        chain,
        TipJarConfig(flush_threshold_quote=Decimal("1"), destination=DESTINATION),
        confirm=_confirm_with(True),
    )

    outcome = await jar.maybe_flush(state, Decimal("100"), FakeSigner())

    assert outcome.status == "accrued"
    assert chain.transfers == []
    assert state.pending_tip_native == 5_000_000


@pytest.mark.asyncio
async def test_confirmed_flush_clears_pending() -> None:
    chain = FakeChain()
    state = LadderState(pending_tip_native=20_000_000)
    jar = TipJar(
        chain,
        TipJarConfig(flush_threshold_quote=Decimal("1"), destination=DESTINATION),
        confirm=_confirm_with(True),
    )

    outcome = await jar.maybe_flush(state, Decimal("100"), FakeSigner())

    assert outcome.status == "sent"
    assert outcome.signature == "tip-sig"
    assert chain.transfers == [(DESTINATION, 20_000_000)]
    assert state.pending_tip_native == 0


@pytest.mark.asyncio
async def test_unconfirmed_flush_keeps_pending() -> None:
    state = LadderState(pending_tip_native=20_000_000)
    jar = TipJar(
        FakeChain(),
        TipJarConfig(destination=DESTINATION),
        confirm=_confirm_with(False),
    )

    outcome = await jar.maybe_flush(state, Decimal("100"), FakeSigner())

    assert outcome.status == "failed"
    assert state.pending_tip_native == 20_000_000


@pytest.mark.asyncio
async def test_transfer_error_keeps_pending() -> None:
    state = LadderState(pending_tip_native=20_000_000)
    jar = TipJar(
        FakeChain(error=RuntimeError("rpc down")),
        TipJarConfig(destination=DESTINATION),
        confirm=_confirm_with(True),
    )

    outcome = await jar.maybe_flush(state, Decimal("100"), FakeSigner())

    assert outcome.status == "failed"
    assert state.pending_tip_native == 20_000_000


@pytest.mark.asyncio
async def test_flush_is_idle_without_destination_or_in_monitor_mode() -> None:
    state = LadderState(pending_tip_native=20_000_000)
    chain = FakeChain()
    no_destination = TipJar(chain, TipJarConfig(), confirm=_confirm_with(True))
    monitor = TipJar(
        chain,
        TipJarConfig(destination=DESTINATION),
        mode="monitor",
        confirm=_confirm_with(True),
    )

    assert (await no_destination.maybe_flush(state, Decimal("100"), FakeSigner())).status == "idle"
    assert (await monitor.maybe_flush(state, Decimal("100"), FakeSigner())).status == "idle"
    assert chain.transfers == []
    assert state.pending_tip_native == 20_000_000


def test_build_tip_jar_reads_config() -> None:
    jar = build_tip_jar(
        {"tip_flush_threshold_quote": "2.5", "tip_destination": DESTINATION},
        FakeChain(),
        "live",
    )

    assert jar.config.flush_threshold_quote == Decimal("2.5")
    assert jar.config.destination == DESTINATION
    assert jar.config.rate == Decimal("0.01")
