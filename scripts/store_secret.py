#!/usr/bin/env python3
"""Store a DCA ladder bot secret (wallet secret, Telegram token, Discord webhook) in the OS keychain."""

from __future__ import annotations

import argparse
import getpass
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))


def build_parser() -> argparse.ArgumentParser:
    from utils.credentials import DEFAULT_SERVICE_NAME, SECRET_ENV_VARS

    parser = argparse.ArgumentParser(
        description="Store a DCA ladder bot secret in the OS keychain."
    )
    parser.add_argument(
        "name",
        choices=sorted(SECRET_ENV_VARS),
        help="Which secret to store.",
    )
    parser.add_argument(
        "--service-name",
        default=DEFAULT_SERVICE_NAME,
        help=f"Keyring service name (default: {DEFAULT_SERVICE_NAME}).",
    )
    return parser


def main() -> int:
    from utils.credentials import SECRET_ENV_VARS, store_secret

    parser = build_parser()
    args = parser.parse_args()
    value = os.getenv(SECRET_ENV_VARS[args.name])
    if not value:
        value = getpass.getpass(f"Enter {args.name}: ")

    store_secret(args.name, value, service_name=args.service_name)
    print(f"✅ Stored {args.name} in keychain for service '{args.service_name}'.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
