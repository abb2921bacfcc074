"""Repository lister — pages through every repository of an organization."""

from __future__ import annotations

import logging
from typing import Any

from lfs_finder.domain.entities import MatchStatus, Repository
from lfs_finder.domain.ports.repo_fetcher import RepoFetcher
from lfs_finder.domain.ports.scan_listener import NullScanListener, ScanListener

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class RepositoryLister:
    """Builds the complete repository list of an organization.

    Uses the plain org listing (not search) so there is no result cap; pages
    are requested until one comes back shorter than :data:`PAGE_SIZE`.
    """

    def __init__(self, fetcher: RepoFetcher, listener: ScanListener | None = None) -> None:
        self._fetcher = fetcher
        self._listener = listener or NullScanListener()

    async def list_repositories(
        self, org: str, existing: list[Repository] | None = None
    ) -> list[Repository]:
        """Return every repository of *org*, most recently pushed first.

        When *existing* is given it is returned unchanged without any request.
        """
        if existing is not None:
            logger.info("Reusing %d previously listed repositories of %s", len(existing), org)
            return existing

        repos: list[Repository] = []
        page = 1
        while True:
            raw = await self._fetcher.fetch_org_repos_page(org, page, PAGE_SIZE)
            if raw:
                repos.extend(to_repository(item) for item in raw)
                self._listener.on_page_fetched(list(repos), page)
                logger.debug("Page %d of %s: %d repositories", page, org, len(raw))
            if len(raw) < PAGE_SIZE:
                break
            page += 1

        logger.info("Listed %d repositories of %s in %d page(s)", len(repos), org, page)
        return repos


def to_repository(item: dict[str, Any]) -> Repository:
    """Map one listing entry to an unscanned :class:`Repository`."""
    return Repository(
        id=int(item["id"]),
        name=item.get("name") or item["full_name"].split("/", 1)[-1],
        full_name=item["full_name"],
        html_url=item.get("html_url", ""),
        default_branch=item.get("default_branch") or "main",
        size_kb=int(item.get("size") or 0),
        pushed_at=item.get("pushed_at"),
        description=item.get("description"),
        status=MatchStatus.UNKNOWN,
    )
