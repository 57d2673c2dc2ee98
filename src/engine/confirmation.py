"""Bounded confirmation polling for submitted transactions."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from engine.execution_client import ChainClient
from solana_client.async_rest import TransientHttpError

LOGGER = logging.getLogger("dca_bot.engine.confirmation")

DEFAULT_CONFIRM_TIMEOUT_SEC = 90.0
DEFAULT_CONFIRM_POLL_SEC = 2.0


async def wait_for_confirmation(
    chain: ChainClient,
    signature: str,
    *,
    timeout: float = DEFAULT_CONFIRM_TIMEOUT_SEC,
    poll_interval: float = DEFAULT_CONFIRM_POLL_SEC,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll until ``signature`` settles, fails, or ``timeout`` elapses.

    Returns True only for a confirmed/finalized status without error. A status
    carrying an error is a definitive failure and is not retried; a missing
    status or a transient RPC error is polled again until the deadline.
    """
    deadline = clock() + timeout
    while clock() < deadline:
        try:
            status = await chain.get_signature_status(signature)
        except TransientHttpError as exc:
            LOGGER.debug("Transient error polling %s: %s", signature, exc)
            status = None
        if status is not None:
            if status.failed:
                LOGGER.warning("Transaction %s failed: %s", signature, status.err)
                return False
            if status.settled:
                return True
        await sleep(poll_interval)
    LOGGER.warning("Transaction %s not confirmed within %.0fs", signature, timeout)
    return False
