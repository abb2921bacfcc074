"""In-process registry of scan jobs running as background asyncio tasks."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field

from lfs_finder.domain.entities import RateLimitSnapshot, Repository, ScanResult, ScanState
from lfs_finder.domain.exceptions import (
    LfsFinderError,
    NetworkError,
    RateLimitExceededError,
    ScanInProgressError,
    ScanNotFoundError,
)
from lfs_finder.domain.ports.scan_listener import ScanListener
from lfs_finder.services.find_lfs_repos import FindLfsReposUseCase

logger = logging.getLogger(__name__)

MAX_FINISHED_JOBS = 20

# (tokens, ghes_host, listener) -> use case
UseCaseFactory = Callable[[list[str], str | None, ScanListener], FindLfsReposUseCase]


@dataclass
class ScanProgress:
    """Mutable progress snapshot, updated by listener callbacks."""

    phase: str = "fetching-repos"
    total_repos: int = 0
    checked_repos: int = 0
    matched_repos: int = 0
    current_repo: str = ""
    retry_message: str | None = None
    rate_limit: RateLimitSnapshot | None = None
    message: str | None = None


@dataclass
class ScanJob:
    """One scan run; also acts as its own :class:`ScanListener`."""

    id: str
    org_name: str
    ghes_host: str | None
    cancel: asyncio.Event = field(default_factory=asyncio.Event)
    progress: ScanProgress = field(default_factory=ScanProgress)
    state: ScanState | None = None
    result: ScanResult | None = None
    task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self.task is not None and not self.task.done()

    # ── ScanListener ────────────────────────────────────────────────────

    def on_page_fetched(self, repos: list[Repository], page: int) -> None:
        self.progress.total_repos = len(repos)
        self.progress.current_repo = f"Page {page}"

    def on_rate_limit(self, snapshot: RateLimitSnapshot) -> None:
        self.progress.rate_limit = snapshot

    def on_retry(self, attempt: int, max_attempts: int, message: str) -> None:
        self.progress.retry_message = f"Retry {attempt}/{max_attempts}: {message}"

    def on_batch_committed(self, scanned: int, last_repo: str, matched: int) -> None:
        self.progress.phase = "checking-lfs"
        self.progress.checked_repos = scanned
        self.progress.current_repo = last_repo
        self.progress.matched_repos = matched
        self.progress.retry_message = None

    # ── Outcomes ────────────────────────────────────────────────────────

    def finish(self, result: ScanResult) -> None:
        self.result = result
        self.state = result.state
        p = self.progress
        p.retry_message = None
        p.total_repos = len(result.state.all_repos)
        p.checked_repos = len(result.state.scanned_repo_ids)
        p.matched_repos = len(result.state.matched_repos)
        if result.was_paused:
            p.phase = "paused"
        elif result.is_partial:
            p.phase = "partial"
        else:
            p.phase = "complete"
        p.message = result.message

    def fail(self, exc: Exception) -> None:
        p = self.progress
        p.retry_message = None
        if self.state is not None:
            self.state.last_error = str(exc)
        if isinstance(exc, RateLimitExceededError):
            p.phase = "partial"
            p.message = f"Rate limit exceeded during repository listing. {exc}"
        elif isinstance(exc, NetworkError):
            p.phase = "partial"
            p.message = f"Network error: {exc}"
        else:
            p.phase = "error"
            p.message = str(exc) or type(exc).__name__


class ScanRegistry:
    """Starts, tracks and pauses scans.  At most one scan runs at a time."""

    def __init__(
        self, use_case_factory: UseCaseFactory, max_finished: int = MAX_FINISHED_JOBS
    ) -> None:
        self._factory = use_case_factory
        self._max_finished = max(0, max_finished)
        self._jobs: dict[str, ScanJob] = {}

    def start(
        self,
        org_name: str,
        *,
        ghes_host: str | None,
        tokens: list[str],
        resume: ScanState | None = None,
    ) -> ScanJob:
        if self.has_running_scan():
            raise ScanInProgressError("A scan is already running; pause it before starting another.")

        job = ScanJob(id=uuid.uuid4().hex, org_name=org_name, ghes_host=ghes_host, state=resume)
        if resume is not None:
            job.progress.phase = "checking-lfs"
            job.progress.total_repos = len(resume.all_repos)
            job.progress.checked_repos = len(resume.scanned_repo_ids)
            job.progress.matched_repos = len(resume.matched_repos)
            job.progress.current_repo = "Resuming scan..."

        self._prune_finished()
        use_case = self._factory(tokens, ghes_host, job)
        job.task = asyncio.create_task(self._run(job, use_case, resume))
        self._jobs[job.id] = job
        logger.info("Started scan %s of %s", job.id, org_name)
        return job

    def has_running_scan(self) -> bool:
        return any(job.is_running for job in self._jobs.values())

    def get(self, scan_id: str) -> ScanJob:
        try:
            return self._jobs[scan_id]
        except KeyError:
            raise ScanNotFoundError(f"Scan '{scan_id}' not found.") from None

    def pause(self, scan_id: str) -> ScanJob:
        job = self.get(scan_id)
        if job.is_running:
            job.cancel.set()
            logger.info("Pause requested for scan %s", scan_id)
        return job

    def _prune_finished(self) -> None:
        """Forget the oldest finished scans beyond the retention limit."""
        finished = [job_id for job_id, job in self._jobs.items() if not job.is_running]
        for job_id in finished[: max(0, len(finished) - self._max_finished)]:
            del self._jobs[job_id]
            logger.debug("Dropped finished scan %s", job_id)

    async def shutdown(self) -> None:
        running = [job.task for job in self._jobs.values() if job.task and not job.task.done()]
        for task in running:
            task.cancel()
        await asyncio.gather(*running, return_exceptions=True)

    @staticmethod
    async def _run(
        job: ScanJob, use_case: FindLfsReposUseCase, resume: ScanState | None
    ) -> None:
        try:
            result = await use_case.execute(
                job.org_name, ghes_host=job.ghes_host, resume=resume, cancel=job.cancel
            )
        except LfsFinderError as exc:
            logger.warning("Scan %s failed: %s", job.id, exc)
            job.fail(exc)
        except Exception as exc:
            logger.exception("Scan %s crashed", job.id)
            job.fail(exc)
        else:
            job.finish(result)
