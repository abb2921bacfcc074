"""Scan orchestrator — drives the config scanner over a scan state in batches.

Batches are fanned out with :func:`asyncio.gather` and committed to the
:class:`ScanState` one at a time.  A batch either commits completely or not
at all, so whatever state a run hands back is always safe to resume from.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from lfs_finder.domain.entities import Repository, ScanOutcome, ScanResult, ScanState
from lfs_finder.domain.exceptions import (
    NetworkError,
    RateLimitExceededError,
    ServerError,
)
from lfs_finder.domain.ports.scan_listener import NullScanListener, ScanListener
from lfs_finder.services.config_scanner import ConfigScanner

logger = logging.getLogger(__name__)

AUTHENTICATED_BATCH_SIZE = 5
ANONYMOUS_BATCH_SIZE = 2
AUTHENTICATED_THROTTLE_SECONDS = 0.1
ANONYMOUS_THROTTLE_SECONDS = 0.5


class ScanOrchestrator:
    """Runs (or resumes) one organization scan.

    Parameters
    ----------
    scanner:
        Classifies a single repository.
    authenticated:
        Whether a credential is available; picks batch size and throttle.
    listener:
        Receives ``on_batch_committed`` after every batch.
    sleep:
        Coroutine used for the inter-batch throttle; injectable for tests.
    """

    def __init__(
        self,
        scanner: ConfigScanner,
        *,
        authenticated: bool,
        listener: ScanListener | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._scanner = scanner
        self._listener = listener or NullScanListener()
        self._sleep = sleep
        if authenticated:
            self.batch_size = AUTHENTICATED_BATCH_SIZE
            self.throttle = AUTHENTICATED_THROTTLE_SECONDS
        else:
            self.batch_size = ANONYMOUS_BATCH_SIZE
            self.throttle = ANONYMOUS_THROTTLE_SECONDS

    async def run(self, state: ScanState, cancel: asyncio.Event | None = None) -> ScanResult:
        """Scan every pending repository of *state*, mutating it batch by batch.

        *cancel* is only checked between batches; a batch already in flight
        always finishes first.
        """
        if state.is_complete:
            return ScanResult(state=state, outcome=ScanOutcome.COMPLETE)

        pending = state.pending_repositories()
        total = len(state.all_repos)
        logger.info(
            "Scanning %d pending of %d repositories in %s (batch size %d)",
            len(pending),
            total,
            state.org_name,
            self.batch_size,
        )

        for start in range(0, len(pending), self.batch_size):
            if cancel is not None and cancel.is_set():
                logger.info("Scan of %s paused by request", state.org_name)
                return ScanResult(
                    state=state,
                    outcome=ScanOutcome.PAUSED,
                    message=f"Scan paused by user. {_progress(state)}",
                )

            batch = pending[start : start + self.batch_size]
            try:
                results = await self._scan_batch(batch)
            except RateLimitExceededError as exc:
                return self._stop(
                    state,
                    ScanOutcome.RATE_LIMITED,
                    exc,
                    f"{exc} {_progress(state)} Resume from the checkpoint after the reset.",
                    rate_limit_reset=exc.reset_at,
                )
            except (NetworkError, ServerError) as exc:
                return self._stop(
                    state,
                    ScanOutcome.NETWORK_ERROR,
                    exc,
                    f"Network error: {exc} {_progress(state)}",
                )
            except Exception as exc:
                logger.exception("Unexpected failure while scanning %s", state.org_name)
                return self._stop(state, ScanOutcome.ERROR, exc, f"{exc} {_progress(state)}")

            state.commit(results)
            self._listener.on_batch_committed(
                len(state.scanned_repo_ids), batch[-1].name, len(state.matched_repos)
            )

            if start + self.batch_size < len(pending):
                await self._sleep(self.throttle)

        state.mark_complete()
        logger.info(
            "Scan of %s complete: %d of %d repositories match",
            state.org_name,
            len(state.matched_repos),
            total,
        )
        return ScanResult(state=state, outcome=ScanOutcome.COMPLETE)

    async def _scan_batch(self, batch: list[Repository]) -> list[Repository]:
        """Scan *batch* concurrently; waits for every member before raising."""
        settled = await asyncio.gather(
            *(self._scanner.scan(repo) for repo in batch),
            return_exceptions=True,
        )
        failures = [r for r in settled if isinstance(r, BaseException)]
        if failures:
            rate_limited = [f for f in failures if isinstance(f, RateLimitExceededError)]
            raise (rate_limited or failures)[0]
        return [r for r in settled if isinstance(r, Repository)]

    @staticmethod
    def _stop(
        state: ScanState,
        outcome: ScanOutcome,
        exc: Exception,
        message: str,
        rate_limit_reset: datetime | None = None,
    ) -> ScanResult:
        state.last_error = str(exc) or type(exc).__name__
        logger.warning("Scan of %s stopped (%s): %s", state.org_name, outcome.value, message)
        return ScanResult(
            state=state,
            outcome=outcome,
            message=message,
            rate_limit_reset=rate_limit_reset,
        )


def _progress(state: ScanState) -> str:
    return f"{len(state.scanned_repo_ids)} of {len(state.all_repos)} repositories scanned."
