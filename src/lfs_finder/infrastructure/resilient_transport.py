"""Resilient transport — one HTTP request with bounded retries and backoff."""

from __future__ import annotations

import asyncio
import logging
import socket
import ssl
from collections.abc import Awaitable, Callable, Mapping

import httpx

from lfs_finder.domain.exceptions import (
    BlockedConnectionError,
    NetworkError,
    ServerError,
)

logger = logging.getLogger(__name__)

BACKOFF_SCHEDULE: tuple[float, ...] = (1.0, 2.0, 4.0, 8.0, 15.0)
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_TIMEOUT_SECONDS = 30.0

RetryCallback = Callable[[int, int, str], None]
Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed *attempt* (1-based); capped at the last step."""
    index = min(max(attempt, 1), len(BACKOFF_SCHEDULE)) - 1
    return BACKOFF_SCHEDULE[index]


def is_blocked_connection(exc: httpx.HTTPError) -> bool:
    """True when the failure is structural: proxy refusal, DNS or TLS rejection."""
    if isinstance(exc, httpx.ProxyError):
        return True
    if not isinstance(exc, httpx.ConnectError):
        return False
    cause: BaseException | None = exc
    seen: set[int] = set()
    while cause is not None and id(cause) not in seen:
        if isinstance(cause, (socket.gaierror, ssl.SSLError)):
            return True
        seen.add(id(cause))
        cause = cause.__cause__ or cause.__context__
    return False


class ResilientTransport:
    """Performs single requests, retrying timeouts, 5xx and transport errors.

    Parameters
    ----------
    client:
        Shared ``httpx.AsyncClient``.
    max_attempts:
        Total attempts per request, including the first one.
    timeout:
        Per-attempt timeout in seconds.
    on_retry:
        Receives ``(attempt, max_attempts, message)`` before each backoff sleep.
    sleep:
        Coroutine used for backoff; injectable for tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_retry: RetryCallback | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._max_attempts = max(1, max_attempts)
        self._timeout = httpx.Timeout(timeout)
        self._on_retry = on_retry
        self._sleep = sleep

    async def get(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """GET *url*; returns any response below 500, raises on exhausted retries."""
        for attempt in range(1, self._max_attempts + 1):
            try:
                resp = await self._client.get(
                    url, headers=headers, params=params, timeout=self._timeout
                )
            except httpx.TimeoutException as exc:
                failure: Exception = NetworkError(f"Request to {url} timed out")
                cause: Exception | None = exc
                reason = "request timed out"
            except httpx.HTTPError as exc:
                if is_blocked_connection(exc):
                    raise BlockedConnectionError(
                        f"Connection to {url} is blocked: {exc}. "
                        "Check the host name, proxy and certificate settings."
                    ) from exc
                failure = NetworkError(f"Network error fetching {url}: {exc}")
                cause = exc
                reason = f"network error ({type(exc).__name__})"
            else:
                if resp.status_code < 500:
                    return resp
                failure = ServerError(
                    f"GitHub API returned HTTP {resp.status_code} for {url}",
                    resp.status_code,
                )
                cause = None
                reason = f"server error {resp.status_code}"

            if attempt >= self._max_attempts:
                logger.error("Giving up on %s after %d attempts", url, attempt)
                raise failure from cause

            delay = backoff_delay(attempt)
            message = f"{reason}, retrying in {delay:g}s"
            logger.warning(
                "Attempt %d/%d for %s failed: %s", attempt, self._max_attempts, url, message
            )
            if self._on_retry is not None:
                self._on_retry(attempt, self._max_attempts, message)
            await self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover
