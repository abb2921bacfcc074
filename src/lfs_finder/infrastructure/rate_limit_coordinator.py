"""Rate-limit coordinator — credential rotation on top of the resilient transport."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone

import httpx

from lfs_finder.domain.entities import RateLimitSnapshot
from lfs_finder.domain.exceptions import RateLimitExceededError
from lfs_finder.infrastructure.credential_pool import CredentialPool
from lfs_finder.infrastructure.resilient_transport import ResilientTransport

logger = logging.getLogger(__name__)

RateLimitCallback = Callable[[RateLimitSnapshot], None]


def parse_rate_limit(headers: httpx.Headers) -> RateLimitSnapshot | None:
    """Read the ``x-ratelimit-*`` headers; ``None`` when the server sent none."""
    remaining_raw = headers.get("x-ratelimit-remaining")
    if remaining_raw is None:
        return None
    try:
        remaining = int(remaining_raw)
        limit = int(headers.get("x-ratelimit-limit", "60"))
        reset_epoch = int(headers.get("x-ratelimit-reset", "0"))
    except ValueError:
        logger.debug("Unparseable rate-limit headers: %s", dict(headers))
        return None
    return RateLimitSnapshot(
        remaining=remaining,
        limit=limit,
        reset_at=datetime.fromtimestamp(reset_epoch, tz=timezone.utc),
    )


def format_reset(reset_at: datetime | None) -> str:
    if reset_at is None:
        return "unknown"
    return reset_at.strftime("%Y-%m-%d %H:%M:%S UTC")


class RateLimitCoordinator:
    """Attaches the pool's active credential and rotates on quota exhaustion.

    A request rejected with 403 and ``x-ratelimit-remaining: 0`` is retried
    with the next credential until every credential has been tried once for
    that request; then :class:`RateLimitExceededError` is raised.
    """

    def __init__(
        self,
        transport: ResilientTransport,
        pool: CredentialPool,
        on_rate_limit: RateLimitCallback | None = None,
    ) -> None:
        self._transport = transport
        self._pool = pool
        self._on_rate_limit = on_rate_limit

    @property
    def pool(self) -> CredentialPool:
        return self._pool

    async def get(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        tried: set[int] = set()

        while True:
            request_headers = dict(headers or {})
            # Other requests of the same batch may rotate the pool while this one is in flight.
            index = self._pool.current_index
            token = self._pool.current()
            if token:
                request_headers["Authorization"] = f"Bearer {token}"

            resp = await self._transport.get(url, headers=request_headers, params=params)

            snapshot = parse_rate_limit(resp.headers)
            if snapshot is not None and self._on_rate_limit is not None:
                self._on_rate_limit(snapshot)

            if not (resp.status_code == 403 and snapshot is not None and snapshot.remaining == 0):
                return resp

            tried.add(index)
            if self._pool.count() > 1 and len(tried) < self._pool.count():
                # Only moves the pool if it still points at a credential this request tried.
                while self._pool.current_index in tried:
                    self._pool.rotate()
                logger.info(
                    "Credential exhausted; rotating to credential %d of %d",
                    self._pool.current_index + 1,
                    self._pool.count(),
                )
                continue

            logger.warning(
                "Rate limit exceeded on all %d credential(s); resets at %s",
                self._pool.count(),
                format_reset(snapshot.reset_at),
            )
            raise RateLimitExceededError(
                f"GitHub API rate limit exceeded. Resets at {format_reset(snapshot.reset_at)}.",
                reset_at=snapshot.reset_at,
            )
