"""Port: repository fetcher — defined by the domain, implemented by infrastructure."""

from __future__ import annotations

from typing import Any, Protocol

from lfs_finder.domain.entities import TreeEntry


class RepoFetcher(Protocol):
    """Abstract contract for fetching organization and repository data."""

    async def fetch_org_repos_page(
        self, org: str, page: int, per_page: int
    ) -> list[dict[str, Any]]:
        """Return one raw page of the organization's repositories."""
        ...

    async def fetch_tree(self, full_name: str, branch: str) -> list[TreeEntry]:
        """Return the recursive file tree for the given branch."""
        ...

    async def fetch_file_content(self, full_name: str, path: str, branch: str) -> str:
        """Return the decoded text content of a single file."""
        ...
