"""Shared fixtures: an in-memory GitHub REST API served through httpx.MockTransport."""

from __future__ import annotations

import asyncio
import socket
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from lfs_finder.domain.entities import RateLimitSnapshot, Repository
from lfs_finder.domain.value_objects import ApiRoot
from lfs_finder.infrastructure.credential_pool import CredentialPool
from lfs_finder.infrastructure.github_rest_adapter import GitHubRestAdapter
from lfs_finder.infrastructure.rate_limit_coordinator import RateLimitCoordinator
from lfs_finder.infrastructure.resilient_transport import ResilientTransport

RESET_EPOCH = 1_700_000_000

JFROG_LFSCONFIG = """[lfs]
\turl = https://acme.jfrog.io/artifactory/api/lfs/lfs-local
"""

PLAIN_LFSCONFIG = """[lfs]
\turl = https://lfs.example.com/acme
"""


class FakeGitHub:
    """Minimal stand-in for the endpoints the scanner uses.

    Tokens listed in ``exhausted_tokens`` get a 403 with zero remaining quota;
    setting ``rate_limited`` does the same for every request.  With
    ``interleave`` set, every request yields to the event loop once before it
    is answered, so concurrent requests overlap like real network calls.
    """

    def __init__(self, org: str = "acme") -> None:
        self.org = org
        self.repos: list[dict[str, Any]] = []
        self.trees: dict[str, list[dict[str, str]]] = {}
        self.tree_status: dict[str, int] = {}
        self.file_status: dict[tuple[str, str], int] = {}
        self.blocked_trees: set[str] = set()
        self.files: dict[tuple[str, str], str] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.exhausted_tokens: set[str] = set()
        self.rate_limited = False
        self.rate_limit_on_tree: str | None = None
        self.interleave = False
        self.requests: list[httpx.Request] = []

    # ── Fixture data ────────────────────────────────────────────────────

    def add_repo(
        self,
        repo_id: int,
        name: str,
        *,
        lfsconfig: str | None = None,
        extra_files: dict[str, str] | None = None,
        branch: str = "main",
        description: str | None = None,
    ) -> str:
        full_name = f"{self.org}/{name}"
        self.repos.append(
            {
                "id": repo_id,
                "name": name,
                "full_name": full_name,
                "html_url": f"https://github.com/{full_name}",
                "description": description,
                "size": repo_id * 10,
                "default_branch": branch,
                "pushed_at": "2024-05-01T12:00:00Z",
            }
        )
        tree = [{"path": "README.md", "type": "blob"}, {"path": "src", "type": "tree"}]
        files = dict(extra_files or {})
        if lfsconfig is not None:
            files[".lfsconfig"] = lfsconfig
        for path, content in files.items():
            tree.append({"path": path, "type": "blob"})
            self.files[(full_name, path)] = content
        self.trees[full_name] = tree
        return full_name

    def populate(self, count: int, matching: set[int]) -> None:
        """Repositories 1..count; ids in *matching* carry a jfrog .lfsconfig."""
        for i in range(1, count + 1):
            config = JFROG_LFSCONFIG if i in matching else (PLAIN_LFSCONFIG if i % 7 == 0 else None)
            self.add_repo(i, f"repo-{i}", lfsconfig=config)

    # ── Transport ───────────────────────────────────────────────────────

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.async_handler))

    def requests_to(self, fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if fragment in r.url.path]

    async def async_handler(self, request: httpx.Request) -> httpx.Response:
        if self.interleave:
            await asyncio.sleep(0)
        return self.handler(request)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        auth = request.headers.get("Authorization", "")
        token = auth.removeprefix("Bearer ") if auth else None
        path = request.url.path.removeprefix("/api/v3")

        if self.rate_limited or (token is not None and token in self.exhausted_tokens):
            return httpx.Response(403, headers=_quota(0), json={"message": "API rate limit exceeded"})

        if path == f"/orgs/{self.org}/repos":
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "30"))
            start = (page - 1) * per_page
            return httpx.Response(200, headers=_quota(4000), json=self.repos[start : start + per_page])

        if path.startswith("/orgs/"):
            return httpx.Response(404, headers=_quota(4000), json={"message": "Not Found"})

        if "/git/trees/" in path:
            full_name = path[len("/repos/") : path.index("/git/trees/")]
            if full_name in self.blocked_trees:
                _raise_dns_failure(request)
            if full_name == self.rate_limit_on_tree:
                self.rate_limited = True
                return httpx.Response(403, headers=_quota(0), json={"message": "API rate limit exceeded"})
            status = self.tree_status.get(full_name)
            if status is not None:
                return httpx.Response(status, headers=_quota(4000), json={"message": "nope"})
            if full_name not in self.trees:
                return httpx.Response(404, headers=_quota(4000), json={"message": "Not Found"})
            return httpx.Response(200, headers=_quota(4000), json={"tree": self.trees[full_name]})

        if "/contents/" in path:
            full_name = path[len("/repos/") : path.index("/contents/")]
            file_path = path[path.index("/contents/") + len("/contents/") :]
            status = self.file_status.get((full_name, file_path))
            if status is not None:
                return httpx.Response(status, headers=_quota(4000), json={"message": "nope"})
            content = self.files.get((full_name, file_path))
            if content is None:
                return httpx.Response(404, headers=_quota(4000), json={"message": "Not Found"})
            return httpx.Response(200, headers=_quota(4000), text=content)

        if path == "/rate_limit":
            return httpx.Response(
                200,
                json={"resources": {"core": {"limit": 5000, "remaining": 4321, "reset": RESET_EPOCH}}},
            )

        if path == "/user":
            user = self.users.get(token or "")
            if user is None:
                return httpx.Response(401, json={"message": "Bad credentials"})
            return httpx.Response(200, json=user)

        return httpx.Response(404, json={"message": "Not Found"})


def _raise_dns_failure(request: httpx.Request) -> None:
    try:
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
    except socket.gaierror as exc:
        raise httpx.ConnectError("dns failure", request=request) from exc


def _quota(remaining: int) -> dict[str, str]:
    return {
        "x-ratelimit-remaining": str(remaining),
        "x-ratelimit-limit": "5000",
        "x-ratelimit-reset": str(RESET_EPOCH),
    }


class RecordingSleep:
    """Async stand-in for ``asyncio.sleep`` that only records delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


class RecordingListener:
    """ScanListener collecting every event."""

    def __init__(self) -> None:
        self.pages: list[tuple[int, int]] = []
        self.rate_limits: list[RateLimitSnapshot] = []
        self.retries: list[tuple[int, int, str]] = []
        self.batches: list[tuple[int, str, int]] = []

    def on_page_fetched(self, repos: list[Repository], page: int) -> None:
        self.pages.append((len(repos), page))

    def on_rate_limit(self, snapshot: RateLimitSnapshot) -> None:
        self.rate_limits.append(snapshot)

    def on_retry(self, attempt: int, max_attempts: int, message: str) -> None:
        self.retries.append((attempt, max_attempts, message))

    def on_batch_committed(self, scanned: int, last_repo: str, matched: int) -> None:
        self.batches.append((scanned, last_repo, matched))


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
async def http_client(fake_github: FakeGitHub):
    client = fake_github.client()
    yield client
    await client.aclose()


@pytest.fixture
def make_adapter(
    http_client: httpx.AsyncClient, sleep: RecordingSleep, listener: RecordingListener
) -> Callable[..., GitHubRestAdapter]:
    """Build the full pool → transport → coordinator → adapter stack."""

    def _make(tokens: tuple[str, ...] = (), host: str | None = None) -> GitHubRestAdapter:
        transport = ResilientTransport(http_client, on_retry=listener.on_retry, sleep=sleep)
        coordinator = RateLimitCoordinator(
            transport, CredentialPool(tokens), on_rate_limit=listener.on_rate_limit
        )
        return GitHubRestAdapter(coordinator, ApiRoot.from_host(host))

    return _make
