"""GitHub REST API adapter — implements the RepoFetcher port."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from lfs_finder.domain.entities import CredentialRateLimit, TreeEntry
from lfs_finder.domain.exceptions import GitHubApiError, OrganizationNotFoundError
from lfs_finder.domain.value_objects import ApiRoot
from lfs_finder.infrastructure.credential_pool import mask_token
from lfs_finder.infrastructure.rate_limit_coordinator import RateLimitCoordinator
from lfs_finder.infrastructure.resilient_transport import ResilientTransport

logger = logging.getLogger(__name__)

_JSON_ACCEPT = "application/vnd.github+json"
_RAW_ACCEPT = "application/vnd.github.raw"
_USER_AGENT = "lfs-finder/1.0"


class GitHubRestAdapter:
    """Concrete RepoFetcher backed by the GitHub v3 REST API.

    Every call goes through the :class:`RateLimitCoordinator`, so credentials
    are attached and rotated transparently.
    """

    def __init__(self, coordinator: RateLimitCoordinator, api_root: ApiRoot | None = None) -> None:
        self._coordinator = coordinator
        self._root = api_root or ApiRoot.from_host(None)

    async def fetch_org_repos_page(
        self, org: str, page: int, per_page: int = 100
    ) -> list[dict[str, Any]]:
        """GET /orgs/{org}/repos?per_page=…&page=…&sort=pushed → raw repo dicts."""
        url = self._root.url(f"/orgs/{quote(org, safe='')}/repos")
        resp = await self._coordinator.get(
            url,
            headers=_headers(_JSON_ACCEPT),
            params={"per_page": str(per_page), "page": str(page), "sort": "pushed"},
        )
        if resp.status_code == 404:
            raise OrganizationNotFoundError(f'Organization "{org}" not found')
        if resp.status_code != 200:
            raise GitHubApiError(
                f"GitHub API returned HTTP {resp.status_code} listing {org} repositories",
                resp.status_code,
            )
        data = resp.json()
        if not isinstance(data, list):
            raise GitHubApiError(f"Unexpected repository listing payload for {org}", resp.status_code)
        return data

    async def fetch_tree(self, full_name: str, branch: str) -> list[TreeEntry]:
        """GET /repos/{full_name}/git/trees/{branch}?recursive=1 → [TreeEntry]."""
        url = self._root.url(f"/repos/{full_name}/git/trees/{quote(branch, safe='')}")
        resp = await self._coordinator.get(
            url, headers=_headers(_JSON_ACCEPT), params={"recursive": "1"}
        )
        if resp.status_code != 200:
            raise GitHubApiError(
                f"GitHub API returned HTTP {resp.status_code} for the tree of {full_name}",
                resp.status_code,
            )
        tree = resp.json().get("tree", [])
        return [
            TreeEntry(path=item["path"], type=item.get("type", "blob"))
            for item in tree
            if "path" in item
        ]

    async def fetch_file_content(self, full_name: str, path: str, branch: str) -> str:
        """GET /repos/{full_name}/contents/{path}?ref={branch} as raw text."""
        url = self._root.url(f"/repos/{full_name}/contents/{quote(path, safe='/')}")
        resp = await self._coordinator.get(
            url, headers=_headers(_RAW_ACCEPT), params={"ref": branch}
        )
        if resp.status_code != 200:
            raise GitHubApiError(
                f"GitHub API returned HTTP {resp.status_code} for {full_name}:{path}",
                resp.status_code,
            )
        return resp.text


class CredentialInspector:
    """Looks up quota and owning account for a single explicit credential.

    Goes straight to the transport: introspection must not rotate the pool.
    """

    def __init__(self, transport: ResilientTransport, api_root: ApiRoot | None = None) -> None:
        self._transport = transport
        self._root = api_root or ApiRoot.from_host(None)

    async def inspect(self, token: str) -> CredentialRateLimit:
        """GET /rate_limit and GET /user for *token*."""
        headers = _headers(_JSON_ACCEPT)
        headers["Authorization"] = f"Bearer {token}"
        label = mask_token(token)

        resp = await self._transport.get(self._root.url("/rate_limit"), headers=headers)
        if resp.status_code != 200:
            return CredentialRateLimit(
                label=label, error=f"HTTP {resp.status_code} from /rate_limit"
            )
        try:
            data = resp.json()
        except ValueError:
            logger.warning("Unreadable /rate_limit payload for %s", label)
            return CredentialRateLimit(label=label, error="Unreadable /rate_limit response")
        if not isinstance(data, dict):
            return CredentialRateLimit(label=label, error="Unexpected /rate_limit response")
        core = data.get("resources", {}).get("core") or data.get("rate") or {}

        username: str | None = None
        user_id: int | None = None
        user_resp = await self._transport.get(self._root.url("/user"), headers=headers)
        if user_resp.status_code == 200:
            try:
                user = user_resp.json()
            except ValueError:
                user = None
            if isinstance(user, dict):
                username = user.get("login")
                user_id = user.get("id")
        else:
            logger.debug("GET /user returned %d for %s", user_resp.status_code, label)

        reset_epoch = core.get("reset")
        return CredentialRateLimit(
            label=label,
            remaining=int(core.get("remaining", 0)),
            limit=int(core.get("limit", 0)),
            reset_at=(
                datetime.fromtimestamp(int(reset_epoch), tz=timezone.utc)
                if reset_epoch is not None
                else None
            ),
            username=username,
            user_id=user_id,
        )


def _headers(accept: str) -> dict[str, str]:
    return {"Accept": accept, "User-Agent": _USER_AGENT}
