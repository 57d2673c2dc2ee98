"""Secret loading helpers for the DCA ladder bot."""

from __future__ import annotations

import os
import re
from typing import Mapping

import keyring
from keyring.errors import KeyringError

DEFAULT_SERVICE_NAME = "dca-ladder-bot"
_ENV_PATTERN = re.compile(r"^\$\{([A-Z0-9_]+)\}$")

# config key -> environment variable consulted when the key is absent
SECRET_ENV_VARS = {
    "wallet_secret": "DCA_WALLET_SECRET",
    "telegram_bot_token": "DCA_TELEGRAM_BOT_TOKEN",
    "discord_webhook": "DCA_DISCORD_WEBHOOK",
}


def load_secret(
    name: str,
    config: Mapping[str, object] | None = None,
    *,
    service_name: str = DEFAULT_SERVICE_NAME,
    env_var: str | None = None,
    required: bool = False,
) -> str | None:
    """Load a secret from config, ``${ENV}`` reference, env var, or keyring in order."""
    env_name = env_var or SECRET_ENV_VARS.get(name, name.upper())
    value = _resolve_value(config, name)
    if not value:
        value = _clean_value(os.getenv(env_name))
    if not value:
        value = _get_keyring_value(service_name, name)
    if not value and required:
        raise ValueError(
            f"{name} is missing. Provide it in the config, set {env_name}, "
            f"or store it in the keychain for service '{service_name}'."
        )
    return value


def store_secret(
    name: str,
    value: str,
    *,
    service_name: str = DEFAULT_SERVICE_NAME,
) -> None:
    """Store a secret in the OS keychain via keyring."""
    cleaned = _clean_value(value)
    if not cleaned:
        raise ValueError(f"{name} must be a non-empty string.")
    try:
        keyring.set_password(service_name, name, cleaned)
    except KeyringError as exc:
        raise RuntimeError(
            "Failed to store credentials in the OS keychain. "
            "Ensure a keyring backend is available."
        ) from exc


def _resolve_value(config: Mapping[str, object] | None, key: str) -> str | None:
    if not config or key not in config:
        return None
    raw = config.get(key)
    if not isinstance(raw, str):
        return _clean_value(str(raw)) if raw is not None else None
    raw = raw.strip()
    if not raw:
        return None
    match = _ENV_PATTERN.match(raw)
    if match:
        return _clean_value(os.getenv(match.group(1)))
    return _clean_value(raw)


def _clean_value(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _get_keyring_value(service_name: str, username: str) -> str | None:
    try:
        return _clean_value(keyring.get_password(service_name, username))
    except KeyringError as exc:
        raise RuntimeError(
            "Failed to access the OS keychain. "
            "Ensure a keyring backend is available."
        ) from exc
