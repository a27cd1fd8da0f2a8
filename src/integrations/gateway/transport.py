"""
Pooled HTTP transport to the payment gateway with bounded exponential retry.

One ``ResilientTransport`` is built at application startup and shared by every
instrument type. Only transient failures are retried: network errors, timeouts
and 5xx responses. 4xx responses are raised immediately as ``GatewayHTTPError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from src.integrations.gateway.envelope import wrap
from src.integrations.gateway.errors import GatewayHTTPError, RetryExhaustedError, TransportFault
from src.utils.config_loader import TransportConfig

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

_RETRYABLE_HTTPX_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass
class OutboundCall:
    """A single signed request to the gateway, built and discarded per call."""

    method: str
    url_path: str
    headers: Dict[str, str] = field(default_factory=dict)
    envelope: Optional[str] = None
    signature: str = field(default="", repr=False)
    attempts: int = 0

    def request_headers(self) -> Dict[str, str]:
        headers = dict(self.headers)
        if self.signature:
            headers["X-VERIFY"] = self.signature
        return headers

    def body(self) -> Optional[Dict[str, str]]:
        return wrap(self.envelope) if self.envelope is not None else None


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 16.0

    def delay_for(self, failed_attempt: int) -> float:
        """Delay after the ``failed_attempt``-th call (1-based)."""
        return min(self.initial_delay * (2 ** (failed_attempt - 1)), self.max_delay)

    @staticmethod
    def is_retryable(exc: BaseException) -> bool:
        if isinstance(exc, GatewayHTTPError):
            return 500 <= exc.status_code < 600
        return isinstance(exc, _RETRYABLE_HTTPX_ERRORS)


class ResilientTransport:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: Optional[httpx.Timeout] = None,
        limits: Optional[httpx.Limits] = None,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or httpx.Timeout(30.0),
            limits=limits or httpx.Limits(max_connections=500, max_keepalive_connections=100, keepalive_expiry=20.0),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        base_url: str,
        config: TransportConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> "ResilientTransport":
        return cls(
            base_url,
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
            limits=httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=config.max_keepalive_connections,
                keepalive_expiry=config.keepalive_expiry,
            ),
            retry_policy=RetryPolicy(
                max_attempts=config.max_attempts,
                initial_delay=config.initial_backoff,
                max_delay=config.max_backoff,
            ),
            transport=transport,
            sleep=sleep,
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def execute(self, call: OutboundCall) -> str:
        """Send ``call`` and return the raw response body, retrying transient failures."""
        max_attempts = max(1, self.retry_policy.max_attempts)
        attempt = 0
        while True:
            attempt += 1
            call.attempts = attempt
            try:
                return await self._send_once(call)
            except (httpx.HTTPError, GatewayHTTPError) as exc:
                if not self.retry_policy.is_retryable(exc):
                    if isinstance(exc, GatewayHTTPError):
                        raise
                    raise TransportFault(f"Gateway request failed: {exc}") from exc
                if attempt >= max_attempts:
                    logger.error(
                        "Gateway call %s %s failed after %d attempt(s): %s",
                        call.method, call.url_path, attempt, exc,
                    )
                    raise RetryExhaustedError(attempt, exc) from exc
                delay = self.retry_policy.delay_for(attempt)
                logger.warning(
                    "Retrying gateway call %s %s (attempt %d/%d) in %.1fs: %s",
                    call.method, call.url_path, attempt + 1, max_attempts, delay, exc,
                )
                await self._sleep(delay)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    async def _send_once(self, call: OutboundCall) -> str:
        response = await self._client.request(
            call.method,
            call.url_path,
            json=call.body(),
            headers=call.request_headers(),
        )
        if response.is_error:
            raise GatewayHTTPError(response.status_code, response.text, url=str(response.request.url))
        logger.debug("Gateway %s %s -> %s: %s", call.method, call.url_path, response.status_code, response.text)
        return response.text
