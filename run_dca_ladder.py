#!/usr/bin/env python
"""DCA ladder bot runner."""

from __future__ import annotations

import os
import sys

import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "src"))

from engine.dca_ladder_runner import resolve_state_path, run_dca_ladder
from utils.config_validator import ConfigValidationError, validate_config
from utils.logging_config import setup_logging


def load_config(config_file: str) -> dict:
    if not os.path.exists(config_file):
        raise FileNotFoundError(f"Config file '{config_file}' not found.")
    with open(config_file, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def run_from_file(config_file: str) -> int:
    setup_logging()
    config = load_config(config_file)
    try:
        validate_config(config, "dca_ladder")
    except ConfigValidationError as exc:
        print(f"Configuration validation failed: {exc}", file=sys.stderr)
        return 2
    run_dca_ladder(config, resolve_state_path(config_file, config))
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python run_dca_ladder.py <config_file>")
        sys.exit(1)
    sys.exit(run_from_file(sys.argv[1]))
