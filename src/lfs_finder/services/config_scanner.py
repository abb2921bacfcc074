"""Config scanner — inspects one repository's config files for the marker."""

from __future__ import annotations

import logging
from dataclasses import replace

from lfs_finder.domain.entities import MatchStatus, Repository, TreeEntry
from lfs_finder.domain.exceptions import (
    BlockedConnectionError,
    GitHubApiError,
    NetworkError,
    ServerError,
)
from lfs_finder.domain.ports.repo_fetcher import RepoFetcher

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "jfrog"
DEFAULT_CONFIG_FILENAME = ".lfsconfig"

# Failures confined to one repository; BlockedConnectionError is re-raised first.
_REPO_FAILURES = (GitHubApiError, ServerError, NetworkError, ValueError)


def find_marker_lines(content: str, marker: str) -> list[str]:
    """Stripped lines containing *marker* (case-insensitive), first occurrence order."""
    needle = marker.lower()
    found: list[str] = []
    for line in content.split("\n"):
        if needle in line.lower():
            stripped = line.strip()
            if stripped not in found:
                found.append(stripped)
    return found


def select_config_files(tree: list[TreeEntry], filename: str) -> list[TreeEntry]:
    return [e for e in tree if e.type == "blob" and e.path.endswith(filename)]


class ConfigScanner:
    """Classifies a repository as match / no match.

    Failures confined to a single repository (empty repo, missing branch,
    unreadable file, 5xx or network errors that outlived the retries) count as
    "no match".  Rate-limit exhaustion and blocked connections propagate so
    the orchestrator can stop with a resumable checkpoint.
    """

    def __init__(
        self,
        fetcher: RepoFetcher,
        marker: str = DEFAULT_MARKER,
        config_filename: str = DEFAULT_CONFIG_FILENAME,
    ) -> None:
        if not marker:
            raise ValueError("marker must not be empty")
        self._fetcher = fetcher
        self._marker = marker
        self._filename = config_filename

    async def scan(self, repo: Repository) -> Repository:
        """Return a copy of *repo* carrying its classification and evidence."""
        result = replace(repo, status=MatchStatus.NO_MATCH, matched_lines=[], config_paths=[])

        try:
            tree = await self._fetcher.fetch_tree(repo.full_name, repo.default_branch)
        except BlockedConnectionError:
            raise
        except _REPO_FAILURES as exc:
            logger.debug("Tree of %s unreadable (%s), treating as no match", repo.full_name, exc)
            return result

        candidates = select_config_files(tree, self._filename)
        if not candidates:
            return result

        for entry in candidates:
            try:
                content = await self._fetcher.fetch_file_content(
                    repo.full_name, entry.path, repo.default_branch
                )
            except BlockedConnectionError:
                raise
            except _REPO_FAILURES as exc:
                logger.debug("Skipping %s:%s (%s)", repo.full_name, entry.path, exc)
                continue
            for line in find_marker_lines(content, self._marker):
                result.record_match(entry.path, line)

        if result.matched_lines:
            result.status = MatchStatus.MATCH
            logger.info(
                "%s references the marker in %s", repo.full_name, ", ".join(result.config_paths)
            )
        return result
