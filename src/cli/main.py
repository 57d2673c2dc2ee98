"""CLI entry point for the DCA ladder bot."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from engine.dca_ladder_runner import build_config, resolve_state_path, run_dca_ladder
from solana_client.constants import LAMPORTS_PER_SOL
from strategies import dca_ladder_describe
from strategies.dca_ladder import ladder_preview, next_drop_pct
from utils.config_validator import (
    ConfigValidationError,
    validate_config,
    validate_dca_ladder_config,
)
from utils.logging_config import setup_logging

LOGGER = logging.getLogger("dca_bot.cli")

SUPPORTED_FORMATS = (".json", ".yaml", ".yml")
DEFAULT_PREVIEW_RUNGS = 10


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DCA ladder bot CLI")
    parser.add_argument("--version", action="version", version="dca-ladder-bot 0.1.0")
    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser(
        "start", help="Start the DCA ladder with a config file."
    )
    start_parser.add_argument(
        "--config", required=True, help="Path to JSON/YAML config file."
    )
    start_parser.add_argument(
        "--state-path",
        help="Optional path to the ledger snapshot (defaults to config file directory).",
    )
    start_parser.add_argument(
        "--monitor-only",
        action="store_true",
        help="Monitor mode only (decisions are reported, nothing is executed).",
    )
    start_parser.add_argument(
        "--pid-file",
        help="Optional PID file to prevent duplicate starts.",
    )
    start_parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    start_parser.add_argument("--log-file", help="Optional log file path.")
    start_parser.add_argument(
        "--structured-logs",
        action="store_true",
        help="Emit JSON log lines.",
    )
    start_parser.set_defaults(handler=run_start)

    preview_parser = subparsers.add_parser(
        "preview", help="Print the rung plan for a config file."
    )
    preview_parser.add_argument(
        "--config", required=True, help="Path to JSON/YAML config file."
    )
    preview_parser.add_argument(
        "--rungs",
        type=int,
        help=f"Rungs to show when max_rungs is 0 (default: {DEFAULT_PREVIEW_RUNGS}).",
    )
    preview_parser.set_defaults(handler=run_preview)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if hasattr(args, "handler"):
        return args.handler(args)
    parser.print_help()
    return 1


def run_start(args: argparse.Namespace) -> int:
    setup_logging(
        level=args.log_level,
        structured=args.structured_logs,
        sanitize=True,
        log_file=args.log_file,
    )
    pid_file = Path(args.pid_file).expanduser() if args.pid_file else None
    try:
        config_path = Path(args.config).expanduser()
        config = load_config(config_path)
        if args.monitor_only:
            config["mode"] = "monitor"
        try:
            validate_config(config, "dca_ladder")
        except ConfigValidationError as exc:
            LOGGER.error("Configuration validation failed: %s", exc)
            return 2

        state_path = resolve_state_path(config_path, config, args.state_path)
        if pid_file:
            ensure_pid_file(pid_file)
            LOGGER.info("PID file: %s", pid_file)

        LOGGER.info("Starting DCA ladder bot")
        LOGGER.info("Strategy description: %s", dca_ladder_describe())
        LOGGER.info("Config file: %s", config_path)
        LOGGER.info("State file: %s", state_path)
        run_dca_ladder(config, state_path)
    except KeyboardInterrupt:
        LOGGER.info("Stopped by user.")
    except (FileNotFoundError, RuntimeError, ValueError) as exc:
        LOGGER.error(str(exc))
        return 2
    except Exception as exc:  # pragma: no cover - safeguard for unexpected issues.
        LOGGER.exception("Unexpected error during startup: %s", exc)
        return 3
    finally:
        if pid_file:
            release_pid_file(pid_file)
    return 0


def run_preview(args: argparse.Namespace) -> int:
    setup_logging(level="WARNING")
    try:
        config = load_config(Path(args.config).expanduser())
        validate_dca_ladder_config(config, require_wallet=False)
        ladder_config = build_config(config)
    except (FileNotFoundError, RuntimeError, ValueError) as exc:
        LOGGER.error(str(exc))
        return 2

    rungs = ladder_config.max_rungs or args.rungs or DEFAULT_PREVIEW_RUNGS
    preview = ladder_preview(ladder_config, rungs)
    lamports = Decimal(LAMPORTS_PER_SOL)
    print(f"{'rung':>4}  {'size (SOL)':>12}  {'drop %':>8}  {'cumulative (SOL)':>17}")
    cumulative = 0
    for index, size in enumerate(preview.rungs):
        cumulative += size
        drop = "-" if index == 0 else f"{next_drop_pct(ladder_config, index):.2f}"
        print(
            f"{index:>4}  {Decimal(size) / lamports:>12.4f}  {drop:>8}"
            f"  {Decimal(cumulative) / lamports:>17.4f}"
        )
    label = "" if preview.bounded else " (unbounded ladder, first rungs shown)"
    print(
        f"Total ≈ {Decimal(preview.total_native) / lamports:.4f} SOL"
        f" • Absorbs ≈ {preview.absorbed_drop_pct:.1f}%{label}"
    )
    return 0


def load_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}. Ensure the path is correct and readable."
        )
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_FORMATS:
        supported = ", ".join(SUPPORTED_FORMATS)
        raise ValueError(
            f"Unsupported config format '{suffix}'. Supported formats: {supported}."
        )
    text = config_path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if suffix == ".json" else yaml.safe_load(text)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config file {config_path}: {exc}. Validate the file format."
        ) from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in config file {config_path}: {exc}.") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {config_path} must contain a JSON/YAML object mapping."
        )
    return data


def ensure_pid_file(pid_file: Path) -> None:
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    if pid_file.exists():
        existing_pid = pid_file.read_text(encoding="utf-8").strip()
        if existing_pid.isdigit() and is_pid_running(int(existing_pid)):
            raise RuntimeError(
                f"PID file {pid_file} already exists with running process {existing_pid}. "
                "Stop the existing instance or pass a different --pid-file."
            )
    pid_file.write_text(str(os.getpid()), encoding="utf-8")


def release_pid_file(pid_file: Path) -> None:
    try:
        if pid_file.read_text(encoding="utf-8").strip() == str(os.getpid()):
            pid_file.unlink()
    except FileNotFoundError:
        pass


def is_pid_running(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


if __name__ == "__main__":
    sys.exit(main())
