"""Domain exception hierarchy.

Each exception maps to a specific HTTP status code at the interface layer.
Inner layers raise these; the outermost error-handler translates them.
"""

from __future__ import annotations

from datetime import datetime


class LfsFinderError(Exception):
    """Base exception for the entire application."""


# ── Input validation ────────────────────────────────────────────────────────


class InvalidHostError(LfsFinderError):
    """The supplied alternate host cannot be turned into an API root."""


class InvalidCheckpointError(LfsFinderError):
    """A persisted scan state is malformed or truncated."""


# ── GitHub API errors ───────────────────────────────────────────────────────


class OrganizationNotFoundError(LfsFinderError):
    """The organization does not exist or is not visible (404)."""


class GitHubApiError(LfsFinderError):
    """GitHub answered with a non-success status that is not otherwise classified."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceededError(LfsFinderError):
    """Every available credential is exhausted (403 with zero remaining quota)."""

    def __init__(self, message: str, reset_at: datetime | None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


# ── Transport errors ────────────────────────────────────────────────────────


class ServerError(LfsFinderError):
    """GitHub kept answering 5xx after every retry attempt."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(LfsFinderError):
    """The request never produced a response (timeout, reset, DNS...)."""


class BlockedConnectionError(NetworkError):
    """The connection is structurally blocked; retrying cannot help."""


# ── Scan lifecycle ──────────────────────────────────────────────────────────


class ScanNotFoundError(LfsFinderError):
    """No scan with the requested id is known to this process."""


class ScanInProgressError(LfsFinderError):
    """The operation needs the scan to be stopped, or another scan is running."""
