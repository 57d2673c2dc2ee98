"""Runner utilities for the DCA ladder strategy."""

from __future__ import annotations

import asyncio
import logging
import math
from decimal import Decimal
from pathlib import Path
from typing import Any

from engine.client_factory import Collaborators, build_collaborators
from engine.state import StateStore
from solana_client.constants import LAMPORTS_PER_SOL
from solana_client.signer import TransactionSigner, load_signer
from strategies.dca_ladder import (
    DcaLadderConfig,
    DcaLadderStrategy,
    ExecutionError,
    LadderContext,
)
from utils.config_validator import ConfigValidationError
from utils.credentials import load_secret
from utils.logging_config import LogContext
from utils.notifications import EventKind, NotificationRouter, parse_event_filter
from utils.tip_jar import build_tip_jar
from utils.trade_log import TradeLog

LOGGER = logging.getLogger("dca_bot.engine.dca_ladder_runner")

DEFAULT_INITIAL_RUNG_SOL = "0.0125"
DEFAULT_STATE_FILE = "dca_state.json"


def sol_to_lamports(value: Any) -> int:
    return int(Decimal(str(value)) * LAMPORTS_PER_SOL)


def build_config(config: dict[str, Any]) -> DcaLadderConfig:
    if "initial_rung_native" in config:
        initial_rung = int(config["initial_rung_native"])
    else:
        initial_rung = sol_to_lamports(
            config.get("initial_rung_sol", DEFAULT_INITIAL_RUNG_SOL)
        )
    if initial_rung <= 0:
        raise ConfigValidationError("initial rung must be at least one lamport")
    return DcaLadderConfig(
        token_mint=str(config["token_mint"]).strip(),
        pair_address=str(config["pair_address"]).strip(),
        initial_rung_native=initial_rung,
        max_rungs=int(config.get("max_rungs", 0)),
        volume_multiplier=Decimal(str(config.get("volume_multiplier", "2"))),
        base_drop_pct=Decimal(str(config.get("base_drop_pct", "10"))),
        drop_multiplier=Decimal(str(config.get("drop_multiplier", "1"))),
        sell_profit_pct=Decimal(str(config.get("sell_profit_pct", "2.5"))),
        indicator_period=int(config.get("indicator_period", 20)),
        indicator_spread_multiplier=Decimal(
            str(config.get("indicator_spread_multiplier", "2"))
        ),
        no_buy_zone_enabled=bool(config.get("no_buy_zone_enabled", False)),
        slippage_cap_bps=int(config.get("slippage_cap_bps", 50)),
        underflow_tolerance=Decimal(str(config.get("underflow_tolerance", "0.9"))),
        detect_manual_transfers=bool(config.get("detect_manual_transfers", False)),
        verbose=bool(config.get("verbose", False)),
        poll_interval_sec=float(config.get("poll_interval_sec", 60)),
        pnl_window_hours=Decimal(str(config.get("pnl_window_hours", "12"))),
        mode=str(config.get("mode", "live")),
    )


def resolve_state_path(
    config_path: str | Path,
    config: dict[str, Any],
    override: str | Path | None = None,
) -> Path:
    """Ledger snapshot location shared by every entry point.

    An explicit override is used as given. Otherwise ``state_path`` from the
    config (default ``dca_state.json``) is resolved against the directory of
    the config file, so the same config always finds the same ledger.
    """
    if override:
        return Path(override).expanduser()
    state_path = Path(str(config.get("state_path", DEFAULT_STATE_FILE))).expanduser()
    if state_path.is_absolute():
        return state_path
    return Path(config_path).expanduser().parent / state_path


def build_notifier(config: dict[str, Any]) -> NotificationRouter:
    chat_id = config.get("telegram_chat_id")
    return NotificationRouter(
        console_events=parse_event_filter(
            config.get("console_events"), default_all=True
        ),
        discord_events=parse_event_filter(
            config.get("discord_events"), default_all=False
        ),
        telegram_events=parse_event_filter(
            config.get("telegram_events"), default_all=False
        ),
        discord_webhook=load_secret("discord_webhook", config),
        telegram_bot_token=load_secret("telegram_bot_token", config),
        telegram_chat_id=str(chat_id) if chat_id not in (None, "") else None,
    )


def build_signer(config: dict[str, Any]) -> TransactionSigner | None:
    path = config.get("signer_factory")
    if not path:
        return None
    secret = load_secret("wallet_secret", config, required=True)
    return load_signer(str(path), secret)


def build_context(
    config: dict[str, Any],
    state_path: Path,
    *,
    collaborators: Collaborators | None = None,
) -> tuple[LadderContext, Collaborators]:
    ladder_config = build_config(config)
    collaborators = collaborators or build_collaborators(config)
    signer = build_signer(config)
    if signer is not None:
        wallet_address = signer.public_key
    else:
        wallet_address = config.get("wallet_address")
    if not wallet_address:
        raise ConfigValidationError(
            "wallet_address is required when no signer_factory is configured"
        )
    context = LadderContext(
        config=ladder_config,
        store=StateStore(state_path),
        notifier=build_notifier(config),
        swap=collaborators.swap,
        chain=collaborators.rpc,
        pairs=collaborators.pairs,
        price_feed=collaborators.price_feed,
        tip_jar=build_tip_jar(config, collaborators.rpc, ladder_config.mode),
        wallet_address=str(wallet_address),
        signer=signer,
        trade_log=TradeLog(config.get("trade_log_dir", ".")),
    )
    return context, collaborators


def build_strategy(
    config: dict[str, Any], state_path: Path
) -> tuple[DcaLadderStrategy, Collaborators]:
    context, collaborators = build_context(config, state_path)
    return DcaLadderStrategy(context), collaborators


class LadderRunner:
    """Fixed-interval tick loop with at most one tick in flight."""

    def __init__(self, strategy: DcaLadderStrategy, interval: float) -> None:
        self.strategy = strategy
        self.interval = interval
        self._in_flight = False
        self.skipped_ticks = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def run_tick(self) -> bool:
        """Run one guarded tick; returns False when it was skipped."""
        if self._in_flight:
            self.skipped_ticks += 1
            LOGGER.warning("Previous tick still running; skipping this one.")
            return False
        self._in_flight = True
        try:
            await self.strategy.tick()
        except ExecutionError as exc:
            LOGGER.warning("Execution failed, ledger unchanged: %s", exc)
            await self.strategy.notify(EventKind.TICK, f"⚠️ {exc}")
        except Exception as exc:
            LOGGER.exception("Tick failed: %s", exc)
            await self.strategy.notify(EventKind.TICK, f"⚠️ Tick failed: {exc}")
        finally:
            self._in_flight = False
        return True

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Start a tick every ``interval`` seconds until ``stop_event`` is set.

        Slots that arrive while a tick is running are skipped, and slots missed
        entirely are dropped rather than queued.
        """
        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        next_slot = loop.time()
        current: asyncio.Task[bool] | None = None
        while not stop_event.is_set():
            if current is not None and not current.done():
                self.skipped_ticks += 1
                LOGGER.warning("Tick still in flight at slot; skipping.")
            else:
                current = asyncio.create_task(self.run_tick())
            next_slot += self.interval
            delay = next_slot - loop.time()
            if delay < 0:
                missed = math.ceil(-delay / self.interval)
                next_slot += missed * self.interval
                delay = next_slot - loop.time()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        if current is not None:
            await current


async def run_dca_ladder_async(
    config: dict[str, Any],
    state_path: Path,
    *,
    stop_event: asyncio.Event | None = None,
) -> None:
    strategy, collaborators = build_strategy(config, state_path)
    try:
        with LogContext(strategy="dca_ladder", mint=strategy.config.token_mint):
            await strategy.initialize()
            LOGGER.info(
                "DCA ladder bot running. Press Ctrl+C to stop. "
                "pair=%s mode=%s poll_interval_sec=%s",
                strategy.config.pair_address,
                strategy.config.mode,
                strategy.config.poll_interval_sec,
            )
            runner = LadderRunner(strategy, strategy.config.poll_interval_sec)
            await runner.run_forever(stop_event)
    finally:
        await strategy.ctx.notifier.close()
        await collaborators.close()


def run_dca_ladder(config: dict[str, Any], state_path: Path) -> None:
    asyncio.run(run_dca_ladder_async(config, state_path))
