"""Domain entities — pure data structures with no external dependencies."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class MatchStatus(str, Enum):
    """Outcome of inspecting one repository for the marker string."""

    UNKNOWN = "unknown"
    MATCH = "match"
    NO_MATCH = "no_match"


class ScanOutcome(str, Enum):
    """How a single orchestrator run ended."""

    COMPLETE = "complete"
    PAUSED = "paused"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A single node from the GitHub tree API (blob or sub-tree)."""

    path: str
    type: str  # "blob" or "tree"


@dataclass(slots=True)
class Repository:
    """One organization member repository plus its scan evidence."""

    id: int
    name: str
    full_name: str
    html_url: str
    default_branch: str
    size_kb: int = 0
    pushed_at: str | None = None
    description: str | None = None
    status: MatchStatus = MatchStatus.UNKNOWN
    matched_lines: list[str] = field(default_factory=list)
    config_paths: list[str] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return self.status is MatchStatus.MATCH

    def record_match(self, path: str, line: str) -> None:
        """Remember *line* (found in *path*), ignoring duplicates."""
        if line not in self.matched_lines:
            self.matched_lines.append(line)
        if path not in self.config_paths:
            self.config_paths.append(path)


@dataclass(frozen=True, slots=True)
class RateLimitSnapshot:
    """Quota figures parsed from one response's ``x-ratelimit-*`` headers."""

    remaining: int
    limit: int
    reset_at: datetime


@dataclass(frozen=True, slots=True)
class CredentialRateLimit:
    """Introspected quota for one credential."""

    label: str
    remaining: int = 0
    limit: int = 0
    reset_at: datetime | None = None
    username: str | None = None
    user_id: int | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class AggregateRateLimit:
    """Per-credential quotas plus totals that count each account once."""

    credentials: list[CredentialRateLimit]
    total_remaining: int
    total_limit: int
    unique_users: int


@dataclass(slots=True)
class ScanState:
    """Resumable checkpoint of one organization scan.

    ``scanned_repo_ids`` and ``pending_repo_ids`` always partition the ids of
    ``all_repos``; ``matched_repos`` only ever holds scanned repositories.
    """

    org_name: str
    all_repos: list[Repository]
    scanned_repo_ids: list[int]
    pending_repo_ids: list[int]
    matched_repos: list[Repository] = field(default_factory=list)
    ghes_host: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_complete: bool = False
    last_error: str | None = None

    @classmethod
    def start(
        cls, org_name: str, repos: list[Repository], ghes_host: str | None = None
    ) -> ScanState:
        """Fresh checkpoint where every repository is still pending."""
        return cls(
            org_name=org_name,
            all_repos=repos,
            scanned_repo_ids=[],
            pending_repo_ids=[r.id for r in repos],
            ghes_host=ghes_host,
        )

    def pending_repositories(self) -> list[Repository]:
        """Pending repositories in listing order."""
        pending = set(self.pending_repo_ids)
        return [r for r in self.all_repos if r.id in pending]

    def commit(self, results: Iterable[Repository]) -> None:
        """Fold one fully scanned batch into the checkpoint."""
        if self.is_complete:
            raise RuntimeError("A completed scan state cannot be modified.")

        pending = set(self.pending_repo_ids)
        done: set[int] = set()
        for repo in results:
            if repo.id not in pending or repo.id in done:
                continue
            done.add(repo.id)
            self.scanned_repo_ids.append(repo.id)
            if repo.is_match:
                self.matched_repos.append(repo)

        self.pending_repo_ids = [i for i in self.pending_repo_ids if i not in done]

    def mark_complete(self) -> None:
        if self.pending_repo_ids:
            raise RuntimeError("Cannot complete a scan with pending repositories.")
        self.is_complete = True
        self.last_error = None


@dataclass(slots=True)
class ScanResult:
    """What one orchestrator run hands back to its caller."""

    state: ScanState
    outcome: ScanOutcome
    message: str | None = None
    rate_limit_reset: datetime | None = None

    @property
    def is_partial(self) -> bool:
        return self.outcome is not ScanOutcome.COMPLETE

    @property
    def was_paused(self) -> bool:
        return self.outcome is ScanOutcome.PAUSED

    @property
    def matched_repos(self) -> list[Repository]:
        return self.state.matched_repos
