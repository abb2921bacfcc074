"""Rate-limit overview — quota across every configured credential."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from lfs_finder.domain.entities import AggregateRateLimit, CredentialRateLimit
from lfs_finder.domain.exceptions import LfsFinderError
from lfs_finder.infrastructure.credential_pool import mask_token

logger = logging.getLogger(__name__)


class CredentialIntrospector(Protocol):
    async def inspect(self, token: str) -> CredentialRateLimit: ...


def aggregate(limits: Sequence[CredentialRateLimit]) -> AggregateRateLimit:
    """Sum quotas, counting each account once.

    Tokens belonging to the same user share one quota on GitHub; tokens whose
    owner is unknown are counted individually.  Failed lookups are listed but
    excluded from the totals.
    """
    seen_users: set[int] = set()
    total_remaining = 0
    total_limit = 0
    accounts = 0
    for entry in limits:
        if entry.error is not None:
            continue
        if entry.user_id is not None:
            if entry.user_id in seen_users:
                continue
            seen_users.add(entry.user_id)
        accounts += 1
        total_remaining += entry.remaining
        total_limit += entry.limit
    return AggregateRateLimit(
        credentials=list(limits),
        total_remaining=total_remaining,
        total_limit=total_limit,
        unique_users=accounts,
    )


async def fetch_rate_limits(
    inspector: CredentialIntrospector, tokens: Sequence[str]
) -> AggregateRateLimit:
    """Inspect every token concurrently and aggregate the results."""

    async def _one(token: str) -> CredentialRateLimit:
        try:
            return await inspector.inspect(token)
        except LfsFinderError as exc:
            logger.warning("Could not inspect credential %s: %s", mask_token(token), exc)
            return CredentialRateLimit(label=mask_token(token), error=str(exc))

    limits = await asyncio.gather(*(_one(t) for t in tokens))
    return aggregate(limits)
