#!/usr/bin/env python3
"""
DCA ladder bot - scaled buys into drawdowns, full exit at a profit target.

Buys a first rung, then buys larger rungs each time price falls a configured
percentage below the previous buy. Sells the whole position once price clears
the cost-weighted average entry plus the profit target.

Usage:
    # Monitor mode (decisions reported, nothing executed)
    python bots/run_dca_ladder.py configs/dca_ladder.yml --monitor-only

    # Live trading mode
    python bots/run_dca_ladder.py configs/dca_ladder.yml
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

import yaml

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))


def load_config(config_file: str) -> dict:
    with open(config_file, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point."""
    from engine.dca_ladder_runner import resolve_state_path, run_dca_ladder
    from utils.config_validator import ConfigValidationError, validate_config
    from utils.logging_config import setup_logging

    parser = argparse.ArgumentParser(description="DCA ladder trading bot")
    parser.add_argument("config", help="Path to configuration file (YAML)")
    parser.add_argument(
        "--monitor-only",
        action="store_true",
        help="Monitor mode only (no execution)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level)

    config = load_config(args.config)
    if args.monitor_only:
        config["mode"] = "monitor"
    else:
        config["mode"] = config.get("mode", "live")

    try:
        validate_config(config, "dca_ladder")
    except ConfigValidationError as exc:
        print(f"Configuration validation failed: {exc}", file=sys.stderr)
        return 2

    state_path = resolve_state_path(args.config, config)
    try:
        run_dca_ladder(config, state_path)
    except KeyboardInterrupt:
        print("Stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
