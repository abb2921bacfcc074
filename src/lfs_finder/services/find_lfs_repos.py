"""Find-LFS-repositories use case — list, scan, checkpoint.

This is the single entry point for the business logic.  It depends only on
the ports (:class:`RepoFetcher`, :class:`ScanListener`,
:class:`CheckpointSink`) and the service modules.  The interface layer
injects concrete adapters at runtime.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from lfs_finder.domain.entities import ScanResult, ScanState
from lfs_finder.domain.ports.checkpoint_sink import CheckpointSink
from lfs_finder.domain.ports.repo_fetcher import RepoFetcher
from lfs_finder.domain.ports.scan_listener import NullScanListener, ScanListener
from lfs_finder.services.config_scanner import (
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_MARKER,
    ConfigScanner,
)
from lfs_finder.services.repository_lister import RepositoryLister
from lfs_finder.services.scan_orchestrator import ScanOrchestrator

logger = logging.getLogger(__name__)


class FindLfsReposUseCase:
    """Orchestrates the full organization → matching repositories pipeline.

    Parameters
    ----------
    fetcher:
        Adapter that lists repositories and reads trees and files.
    authenticated:
        Whether the fetcher carries at least one credential.
    listener:
        Receives page and batch progress.
    checkpoint_sink:
        Receives the scan state whenever a run stops for any reason other
        than a pause.  ``None`` disables auto-persistence.
    """

    def __init__(
        self,
        fetcher: RepoFetcher,
        *,
        authenticated: bool,
        listener: ScanListener | None = None,
        checkpoint_sink: CheckpointSink | None = None,
        marker: str = DEFAULT_MARKER,
        config_filename: str = DEFAULT_CONFIG_FILENAME,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        listener = listener or NullScanListener()
        self._lister = RepositoryLister(fetcher, listener)
        self._orchestrator = ScanOrchestrator(
            ConfigScanner(fetcher, marker=marker, config_filename=config_filename),
            authenticated=authenticated,
            listener=listener,
            sleep=sleep,
        )
        self._sink = checkpoint_sink

    async def execute(
        self,
        org_name: str | None = None,
        *,
        ghes_host: str | None = None,
        resume: ScanState | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ScanResult:
        """Run a fresh scan of *org_name*, or continue *resume*.

        Listing failures propagate as domain errors (there is no checkpoint
        yet).  Failures while scanning come back as a partial
        :class:`ScanResult` and the state is handed to the checkpoint sink.
        """
        if resume is not None:
            org = resume.org_name
            logger.info(
                "Resuming scan of %s: %d scanned, %d pending",
                org,
                len(resume.scanned_repo_ids),
                len(resume.pending_repo_ids),
            )
        elif org_name and org_name.strip():
            org = org_name.strip()
        else:
            raise ValueError("Either an organization name or a scan state is required.")

        repos = await self._lister.list_repositories(
            org, existing=resume.all_repos if resume is not None else None
        )
        state = resume if resume is not None else ScanState.start(org, repos, ghes_host=ghes_host)

        result = await self._orchestrator.run(state, cancel)

        if result.is_partial and not result.was_paused and self._sink is not None:
            try:
                self._sink.save(result.state)
            except OSError:
                logger.exception("Could not persist checkpoint for %s", org)
        return result
