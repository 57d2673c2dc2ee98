"""Crash-safe position ledger for the DCA ladder."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable

LOGGER = logging.getLogger("dca_bot.engine.state")

BIGINT_SUFFIX = "n"


@dataclass(frozen=True)
class BuyRecord:
    price: Decimal
    native_amount: int
    asset_amount: int


@dataclass(frozen=True)
class SellSummary:
    timestamp: float
    profit_quote: Decimal
    profit_native: Decimal
    profit_pct: Decimal


@dataclass
class LadderState:
    tracked_asset_id: str = ""
    buys: list[BuyRecord] = field(default_factory=list)
    sells: list[SellSummary] = field(default_factory=list)
    pending_tip_native: int = 0

    def total_asset_amount(self) -> int:
        return sum(buy.asset_amount for buy in self.buys)

    def total_native_amount(self) -> int:
        return sum(buy.native_amount for buy in self.buys)

    def record_buy(self, buy: BuyRecord) -> None:
        self.buys.append(buy)

    def record_sell(self, summary: SellSummary) -> None:
        self.sells.append(summary)
        self.buys = []

    def clear_buys(self) -> None:
        self.buys = []

    def switch_asset(self, asset_id: str) -> None:
        self.tracked_asset_id = asset_id
        self.buys = []
        self.sells = []
        self.pending_tip_native = 0

    def accrue_tip(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Tip accrual must be non-negative, got: {amount}")
        self.pending_tip_native += amount

    def clear_tip(self) -> None:
        self.pending_tip_native = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "trackedAssetId": self.tracked_asset_id,
            "buys": [
                {
                    "price": str(buy.price),
                    "nativeAmount": buy.native_amount,
                    "assetAmount": encode_bigint(buy.asset_amount),
                }
                for buy in self.buys
            ],
            "sells": [
                {
                    "timestamp": sell.timestamp,
                    "profitQuote": str(sell.profit_quote),
                    "profitNative": str(sell.profit_native),
                    "profitPct": str(sell.profit_pct),
                }
                for sell in self.sells
            ],
            "pendingTipNative": encode_bigint(self.pending_tip_native),
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "LadderState":
        if not isinstance(payload, dict):
            raise ValueError("Snapshot must be a JSON object")
        buys = [
            BuyRecord(
                price=Decimal(str(item["price"])),
                native_amount=int(item["nativeAmount"]),
                asset_amount=decode_bigint(item["assetAmount"]),
            )
            for item in payload.get("buys", [])
        ]
        sells = [
            SellSummary(
                timestamp=float(item["timestamp"]),
                profit_quote=Decimal(str(item["profitQuote"])),
                profit_native=Decimal(str(item["profitNative"])),
                profit_pct=Decimal(str(item["profitPct"])),
            )
            for item in payload.get("sells", [])
        ]
        pending = decode_bigint(payload.get("pendingTipNative", f"0{BIGINT_SUFFIX}"))
        if pending < 0:
            raise ValueError(f"pendingTipNative must be non-negative, got: {pending}")
        return cls(
            tracked_asset_id=str(payload.get("trackedAssetId", "")),
            buys=buys,
            sells=sells,
            pending_tip_native=pending,
        )


def encode_bigint(value: int) -> str:
    return f"{int(value)}{BIGINT_SUFFIX}"


def decode_bigint(value: Any) -> int:
    """Decode a tagged ``"<digits>n"`` string; bare JSON ints are accepted too."""
    if isinstance(value, bool):
        raise ValueError(f"Not an integer: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.endswith(BIGINT_SUFFIX):
        return int(value[: -len(BIGINT_SUFFIX)])
    raise ValueError(f"Not a tagged integer: {value!r}")


class StateStore:
    """Loads and saves :class:`LadderState` snapshots at ``path``."""

    def __init__(
        self,
        path: str | Path,
        *,
        time_provider: Callable[[], float] | None = None,
    ) -> None:
        self.path = Path(path)
        self._time = time_provider or time.time

    def load(self) -> LadderState:
        """Load the snapshot; a missing, empty or corrupt file yields fresh state.

        Corrupt snapshots are renamed to ``<name>.corrupt_<epoch-ms>``.
        """
        if not self.path.exists() or self.path.stat().st_size == 0:
            return LadderState()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            return LadderState.from_payload(payload)
        except (
            json.JSONDecodeError,
            UnicodeDecodeError,
            KeyError,
            TypeError,
            ValueError,
            InvalidOperation,
        ) as exc:
            quarantined = self.quarantine()
            LOGGER.warning(
                "State snapshot %s is unreadable (%s); moved to %s and starting fresh.",
                self.path,
                exc,
                quarantined,
            )
            return LadderState()

    def quarantine(self) -> Path:
        target = self.path.with_name(
            f"{self.path.name}.corrupt_{int(self._time() * 1000)}"
        )
        os.replace(self.path, target)
        return target

    def save(self, state: LadderState) -> None:
        """Write the full snapshot atomically (tmp + fsync + rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        data = json.dumps(state.to_payload(), indent=2, sort_keys=True)
        with tmp_path.open("w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, self.path)
