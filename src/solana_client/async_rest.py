"""Async JSON-over-HTTP client shared by the Solana collaborators."""

from __future__ import annotations

import asyncio
import json
import logging
import random
import ssl
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlencode

import aiohttp

LOGGER = logging.getLogger("dca_bot.http")


@dataclass
class HttpRequest:
    method: str
    path: str
    params: Mapping[str, Any] | None = None
    body: Any = None


class HttpClientError(Exception):
    """Base exception for HTTP collaborator errors."""


class RateLimitError(HttpClientError):
    """Raised when the API indicates that the rate limit has been exceeded."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransientHttpError(HttpClientError):
    """Raised for transient HTTP errors that may succeed on retry."""


class AsyncJsonClient:
    """Async JSON client with retry and rate-limit handling."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        session: aiohttp.ClientSession | None = None,
        verify_ssl: bool = True,  # Enable SSL certificate verification
        ssl_context: ssl.SSLContext | None = None,  # Custom SSL context
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._ssl_context = ssl_context
        if ssl_context is None and verify_ssl:
            self._ssl_context = ssl.create_default_context()
        elif ssl_context is None and not verify_ssl:
            self._ssl_context = ssl._create_unverified_context()
            LOGGER.warning(
                "SSL certificate verification is DISABLED. "
                "This should NEVER be used with a funded wallet."
            )
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self._session = session
        self._owns_session = session is None

    def build_url(self, path: str) -> str:
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    async def send(self, request: HttpRequest) -> Any:
        attempts = 0
        while True:
            try:
                return await self._send_once(request)
            except RateLimitError as exc:
                attempts += 1
                if attempts > self.max_retries:
                    raise
                delay = exc.retry_after or self._compute_backoff(attempts)
                await asyncio.sleep(delay)
            except TransientHttpError:
                attempts += 1
                if attempts > self.max_retries:
                    raise
                await asyncio.sleep(self._compute_backoff(attempts))

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.send(HttpRequest(method="GET", path=path, params=params))

    async def post(self, path: str, body: Any) -> Any:
        return await self.send(HttpRequest(method="POST", path=path, body=body))

    async def _send_once(self, request: HttpRequest) -> Any:
        url = self.build_url(request.path)
        headers = {"Accept": "application/json"}
        if request.params:
            url = f"{url}?{urlencode(request.params)}"

        data_bytes = None
        if request.method.upper() != "GET" and request.body is not None:
            data_bytes = json.dumps(request.body, separators=(",", ":")).encode("utf8")
            headers["Content-Type"] = "application/json"

        session = await self._ensure_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with session.request(
                request.method.upper(),
                url,
                headers=headers,
                data=data_bytes,
                timeout=timeout,
            ) as response:
                payload = await response.text()
                if response.status == 429:
                    retry_after = self._parse_retry_after(
                        response.headers.get("Retry-After")
                    )
                    raise RateLimitError(
                        "Rate limit exceeded", retry_after=retry_after
                    )
                if response.status in {500, 502, 503, 504}:
                    raise TransientHttpError(
                        f"Transient HTTP error {response.status}"
                    )
                if response.status >= 400:
                    raise HttpClientError(
                        self._build_http_error_message(response.status, payload)
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransientHttpError(
                f"Network error while contacting {self.base_url}"
            ) from exc

        if not payload:
            return {}
        try:
            return json.loads(payload)
        except json.JSONDecodeError as exc:
            raise HttpClientError(f"Invalid JSON from {url}: {payload[:200]}") from exc

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            connector = aiohttp.TCPConnector(ssl=self._ssl_context)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
            self._owns_session = True
        return self._session

    def _compute_backoff(self, attempt: int) -> float:
        base = self.backoff_factor * (2 ** (attempt - 1))
        return base + random.uniform(0, base)

    def _parse_retry_after(self, header_value: str | None) -> float | None:
        if header_value is None:
            return None
        try:
            return float(header_value)
        except ValueError:
            return None

    def _build_http_error_message(self, status_code: int, payload: str) -> str:
        if payload:
            return f"HTTP error {status_code}: {payload}"
        return f"HTTP error {status_code}"
