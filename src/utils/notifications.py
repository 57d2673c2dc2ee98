"""Event routing to console, Discord and Telegram."""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from typing import Any, Iterable

import aiohttp

LOGGER = logging.getLogger("dca_bot.notify")

TELEGRAM_API_URL = "https://api.telegram.org"


class EventKind(str, enum.Enum):
    START = "START"
    TICK = "TICK"
    BALANCE = "BALANCE"
    BUY = "BUY"
    SELL = "SELL"


ALL = frozenset(EventKind)

_SEPARATORS = re.compile(r"[,\s]+")


def parse_event_filter(value: Any, *, default_all: bool) -> frozenset[EventKind]:
    """Parse a channel filter from a list or a comma/space separated string.

    ``ALL`` (any case) selects every kind. An empty filter selects every kind
    when ``default_all`` is set and nothing otherwise. Unknown names raise
    ValueError.
    """
    if value is None:
        names: list[str] = []
    elif isinstance(value, str):
        names = [item for item in _SEPARATORS.split(value) if item]
    elif isinstance(value, Iterable):
        names = []
        for item in value:
            names.extend(part for part in _SEPARATORS.split(str(item)) if part)
    else:
        raise ValueError(f"Event filter must be a list or string, got: {value!r}")

    if not names:
        return ALL if default_all else frozenset()

    kinds: set[EventKind] = set()
    for name in names:
        upper = name.upper()
        if upper == "ALL":
            return ALL
        try:
            kinds.add(EventKind(upper))
        except ValueError as exc:
            valid = ", ".join(kind.value for kind in EventKind)
            raise ValueError(
                f"Unknown event kind '{name}'. Expected ALL or one of: {valid}"
            ) from exc
    return frozenset(kinds)


class NotificationRouter:
    """Fans one event out to every channel whose filter admits it.

    Delivery failures are logged and never raised to the caller.
    """

    def __init__(
        self,
        *,
        console_events: Iterable[EventKind] = ALL,
        discord_events: Iterable[EventKind] = (),
        telegram_events: Iterable[EventKind] = (),
        discord_webhook: str | None = None,
        telegram_bot_token: str | None = None,
        telegram_chat_id: str | None = None,
        session: aiohttp.ClientSession | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.console_events = frozenset(console_events) or ALL
        self.discord_events = frozenset(discord_events)
        self.telegram_events = frozenset(telegram_events)
        self.discord_webhook = discord_webhook
        self.telegram_bot_token = telegram_bot_token
        self.telegram_chat_id = telegram_chat_id
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def wants(self, kind: EventKind) -> bool:
        """True when at least one configured channel would receive ``kind``."""
        return (
            kind in self.console_events
            or (self.discord_webhook is not None and kind in self.discord_events)
            or (
                self.telegram_bot_token is not None
                and self.telegram_chat_id is not None
                and kind in self.telegram_events
            )
        )

    async def send(self, kind: EventKind, message: str) -> None:
        if kind in self.console_events:
            LOGGER.info(message)

        deliveries = []
        if self.discord_webhook and kind in self.discord_events:
            deliveries.append(
                self._post_json(self.discord_webhook, {"content": message})
            )
        if (
            self.telegram_bot_token
            and self.telegram_chat_id
            and kind in self.telegram_events
        ):
            deliveries.append(
                self._post_json(
                    f"{TELEGRAM_API_URL}/bot{self.telegram_bot_token}/sendMessage",
                    {"chat_id": self.telegram_chat_id, "text": message},
                )
            )
        if not deliveries:
            return
        results = await asyncio.gather(*deliveries, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                LOGGER.warning("Notification delivery failed: %s", result)

    async def _post_json(self, url: str, payload: dict[str, Any]) -> None:
        session = await self._ensure_session()
        async with session.post(
            url,
            json=payload,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status >= 400:
                body = await response.text()
                raise aiohttp.ClientResponseError(
                    response.request_info,
                    response.history,
                    status=response.status,
                    message=body[:200],
                )

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
