"""Port: scan listener — progress notifications pushed to the caller."""

from __future__ import annotations

from typing import Protocol

from lfs_finder.domain.entities import RateLimitSnapshot, Repository


class ScanListener(Protocol):
    """Observer for a running scan.

    Events are delivered synchronously, in the order they are produced:
    page by page while listing, batch by batch while scanning.
    """

    def on_page_fetched(self, repos: list[Repository], page: int) -> None:
        """Called after every repository page with the list accumulated so far."""
        ...

    def on_rate_limit(self, snapshot: RateLimitSnapshot) -> None:
        """Called after every response that carried rate-limit headers."""
        ...

    def on_retry(self, attempt: int, max_attempts: int, message: str) -> None:
        """Called before sleeping ahead of a retry."""
        ...

    def on_batch_committed(self, scanned: int, last_repo: str, matched: int) -> None:
        """Called after each batch is folded into the scan state."""
        ...


class NullScanListener:
    """Listener that ignores every event."""

    def on_page_fetched(self, repos: list[Repository], page: int) -> None:
        pass

    def on_rate_limit(self, snapshot: RateLimitSnapshot) -> None:
        pass

    def on_retry(self, attempt: int, max_attempts: int, message: str) -> None:
        pass

    def on_batch_committed(self, scanned: int, last_repo: str, matched: int) -> None:
        pass
