"""Configuration validation utilities for the DCA ladder bot."""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from utils.notifications import parse_event_filter

LOGGER = logging.getLogger("dca_bot.utils.config_validator")

_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
_SIGNER_PATH = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_]\w*$")

EVENT_FILTER_FIELDS = ("console_events", "discord_events", "telegram_events")


class ConfigValidationError(ValueError):
    """Raised when configuration validation fails."""


def validate_address(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    """Validate that a field holds a base58 Solana address."""
    if field not in config or config[field] in (None, ""):
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, str) or not _BASE58_ADDRESS.match(value.strip()):
        raise ConfigValidationError(
            f"{field} must be a base58 address, got: {value}"
        )


def _to_decimal(config: dict[str, Any], field: str) -> Decimal:
    value = config[field]
    if isinstance(value, bool):
        raise ConfigValidationError(f"{field} must be a valid number, got: {value}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ConfigValidationError(
            f"{field} must be a valid number, got: {value}"
        ) from exc


def validate_positive_decimal(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    """Validate that a field is a positive decimal value."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    decimal_value = _to_decimal(config, field)
    if not decimal_value.is_finite() or decimal_value <= 0:
        raise ConfigValidationError(f"{field} must be positive, got: {decimal_value}")


def validate_non_negative_decimal(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    """Validate that a field is a non-negative decimal value."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    decimal_value = _to_decimal(config, field)
    if not decimal_value.is_finite() or decimal_value < 0:
        raise ConfigValidationError(
            f"{field} must be non-negative, got: {decimal_value}"
        )


def validate_fraction(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    """Validate that a field lies in (0, 1]."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    decimal_value = _to_decimal(config, field)
    if not (Decimal("0") < decimal_value <= Decimal("1")):
        raise ConfigValidationError(
            f"{field} must be greater than 0 and at most 1, got: {decimal_value}"
        )


def validate_percentage(
    config: dict[str, Any], field: str, *, required: bool = True
) -> None:
    """Validate that a field is a percentage between 0 and 100."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    decimal_value = _to_decimal(config, field)
    if not (Decimal("0") <= decimal_value <= Decimal("100")):
        raise ConfigValidationError(
            f"{field} must be between 0 and 100, got: {decimal_value}"
        )


def validate_positive_integer(
    config: dict[str, Any], field: str, *, required: bool = True, minimum: int = 1
) -> None:
    """Validate that a field is an integer of at least ``minimum``."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigValidationError(
            f"{field} must be an integer, got: {type(value).__name__}"
        )

    if value < minimum:
        raise ConfigValidationError(f"{field} must be >= {minimum}, got: {value}")


def validate_bool(config: dict[str, Any], field: str) -> None:
    if field in config and not isinstance(config[field], bool):
        raise ConfigValidationError(
            f"{field} must be true or false, got: {config[field]}"
        )


def validate_choice(
    config: dict[str, Any], field: str, choices: set[str], *, required: bool = True
) -> None:
    """Validate that a field is one of the allowed choices."""
    if field not in config:
        if required:
            raise ConfigValidationError(f"Missing required field: {field}")
        return

    value = config[field]
    if not isinstance(value, str):
        raise ConfigValidationError(
            f"{field} must be a string, got: {type(value).__name__}"
        )

    if value not in choices:
        choices_str = ", ".join(sorted(choices))
        raise ConfigValidationError(
            f"{field} must be one of [{choices_str}], got: {value}"
        )


def validate_url(config: dict[str, Any], field: str = "rpc_url") -> None:
    """Validate that a URL field is properly formatted."""
    if field not in config or config[field] is None:
        return

    url = config[field]
    if not isinstance(url, str) or not url.strip():
        raise ConfigValidationError(f"{field} must be a non-empty string")

    if not re.match(r"^https?://", url, re.IGNORECASE):
        raise ConfigValidationError(
            f"{field} must start with http:// or https://, got: {url}"
        )


def validate_event_filters(config: dict[str, Any]) -> None:
    """Validate per-channel event filters (list or comma/space separated)."""
    for field in EVENT_FILTER_FIELDS:
        if field not in config:
            continue
        try:
            parse_event_filter(config[field], default_all=field == "console_events")
        except ValueError as exc:
            raise ConfigValidationError(f"{field}: {exc}") from exc


def validate_drop_schedule(config: dict[str, Any]) -> None:
    """Reject ladders whose per-rung drop reaches 100% within ``max_rungs``.

    A drop of 100% or more puts the buy trigger at or below zero, so the
    ladder would never buy again. Unbounded ladders with a growing drop only
    get a warning naming the first rung that can never trigger.
    """
    base = (
        _to_decimal(config, "base_drop_pct")
        if config.get("base_drop_pct") is not None
        else Decimal("10")
    )
    multiplier = (
        _to_decimal(config, "drop_multiplier")
        if config.get("drop_multiplier") is not None
        else Decimal("1")
    )
    max_rungs = int(config.get("max_rungs") or 0)
    if max_rungs > 0:
        deepest = base * multiplier ** (max_rungs - 1)
        if deepest >= 100:
            raise ConfigValidationError(
                f"drop for rung {max_rungs - 1} reaches {deepest:.2f}%; "
                "lower base_drop_pct, drop_multiplier or max_rungs"
            )
        return
    if multiplier <= 1:
        return
    rung, drop = 0, base
    while drop < 100:
        rung += 1
        drop = base * multiplier**rung
    LOGGER.warning(
        "Unbounded ladder: drop for rung %s reaches %.2f%%, buys stop there",
        rung,
        drop,
    )


def validate_signer_factory(config: dict[str, Any]) -> None:
    value = config.get("signer_factory")
    if value is None:
        return
    if not isinstance(value, str) or not _SIGNER_PATH.match(value.strip()):
        raise ConfigValidationError(
            "signer_factory must look like 'package.module:callable', "
            f"got: {value}"
        )


def validate_dca_ladder_config(
    config: dict[str, Any], *, require_wallet: bool = True
) -> None:
    """Validate configuration for the DCA ladder strategy.

    ``require_wallet`` may be turned off for commands that never touch the
    chain, such as printing the rung plan.
    """
    validate_address(config, "token_mint")
    validate_address(config, "pair_address")
    validate_url(config, "rpc_url")
    validate_url(config, "jupiter_url")

    validate_positive_decimal(config, "initial_rung_sol", required=False)
    validate_positive_integer(config, "max_rungs", required=False, minimum=0)
    validate_positive_decimal(config, "volume_multiplier", required=False)
    validate_percentage(config, "base_drop_pct", required=False)
    if "base_drop_pct" in config and _to_decimal(config, "base_drop_pct") <= 0:
        raise ConfigValidationError("base_drop_pct must be positive")
    validate_positive_decimal(config, "drop_multiplier", required=False)
    validate_drop_schedule(config)
    validate_positive_decimal(config, "sell_profit_pct", required=False)
    validate_positive_integer(config, "indicator_period", required=False)
    validate_non_negative_decimal(
        config, "indicator_spread_multiplier", required=False
    )
    validate_bool(config, "no_buy_zone_enabled")
    validate_positive_integer(config, "slippage_cap_bps", required=False)
    validate_fraction(config, "underflow_tolerance", required=False)
    validate_non_negative_decimal(config, "tip_flush_threshold_quote", required=False)
    validate_address(config, "tip_destination", required=False)
    validate_bool(config, "detect_manual_transfers")
    validate_bool(config, "verbose")
    validate_positive_decimal(config, "poll_interval_sec", required=False)
    validate_positive_decimal(config, "pnl_window_hours", required=False)
    validate_choice(config, "mode", {"live", "monitor"}, required=False)
    validate_event_filters(config)
    validate_signer_factory(config)

    if not require_wallet:
        return
    if config.get("mode", "live") == "live" and not config.get("signer_factory"):
        raise ConfigValidationError(
            "Missing required field: signer_factory (required in live mode)"
        )
    if config.get("mode") == "monitor" and not config.get("signer_factory"):
        validate_address(config, "wallet_address")


def validate_config(config: dict[str, Any], strategy: str | None = None) -> None:
    """
    Validate configuration for a specific strategy.

    Args:
        config: Configuration dictionary
        strategy: Strategy name (currently only 'dca_ladder')

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ConfigValidationError("Configuration must be a dictionary")

    if not config:
        raise ConfigValidationError("Configuration cannot be empty")

    if strategy in (None, "dca_ladder"):
        validate_dca_ladder_config(config)
    else:
        raise ConfigValidationError(f"Unknown strategy: {strategy}")
