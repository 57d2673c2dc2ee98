"""Append-only CSV ledger of confirmed buys and sells."""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

FIELDNAMES = [
    "timestamp",
    "symbol",
    "event",
    "tx_id",
    "asset_amount",
    "price",
    "native_delta",
    "native_ref_price",
    "quote_delta",
    "pnl_pct",
    "pnl_quote",
]


class TradeLog:
    """Writes one row per confirmed trade to ``<SYMBOL>_trade_log.csv``."""

    def __init__(self, directory: str | Path = ".") -> None:
        self.directory = Path(directory)

    def path_for(self, symbol: str) -> Path:
        safe_symbol = "".join(ch for ch in symbol if ch.isalnum() or ch in "-_") or "TOKEN"
        return self.directory / f"{safe_symbol}_trade_log.csv"

    def record_buy(
        self,
        *,
        symbol: str,
        tx_id: str,
        asset_amount: Decimal,
        price: Decimal,
        native_spent: Decimal,
        native_ref_price: Decimal,
        timestamp: datetime | None = None,
    ) -> None:
        self._append(
            symbol,
            {
                "timestamp": _iso(timestamp),
                "symbol": symbol,
                "event": "BUY",
                "tx_id": tx_id,
                "asset_amount": f"{asset_amount:.6f}",
                "price": str(price),
                "native_delta": str(-native_spent),
                "native_ref_price": str(native_ref_price),
                "quote_delta": str(-(native_spent * native_ref_price)),
                "pnl_pct": "",
                "pnl_quote": "",
            },
        )

    def record_sell(
        self,
        *,
        symbol: str,
        tx_id: str,
        asset_amount: Decimal,
        price: Decimal,
        native_received: Decimal,
        native_ref_price: Decimal,
        pnl_pct: Decimal,
        pnl_quote: Decimal,
        timestamp: datetime | None = None,
    ) -> None:
        self._append(
            symbol,
            {
                "timestamp": _iso(timestamp),
                "symbol": symbol,
                "event": "SELL",
                "tx_id": tx_id,
                "asset_amount": f"{asset_amount:.6f}",
                "price": str(price),
                "native_delta": str(native_received),
                "native_ref_price": str(native_ref_price),
                "quote_delta": str(native_received * native_ref_price),
                "pnl_pct": f"{pnl_pct:.2f}",
                "pnl_quote": f"{pnl_quote:.2f}",
            },
        )

    def _append(self, symbol: str, row: dict[str, str]) -> None:
        path = self.path_for(symbol)
        path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not path.exists() or path.stat().st_size == 0
        with path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=FIELDNAMES)
            if write_header:
                writer.writeheader()
            writer.writerow(row)


def _iso(timestamp: datetime | None) -> str:
    return (timestamp or datetime.now(timezone.utc)).isoformat()
