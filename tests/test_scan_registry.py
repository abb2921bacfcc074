import asyncio

import pytest

from lfs_finder.domain.exceptions import ScanInProgressError, ScanNotFoundError
from lfs_finder.interface.scan_registry import ScanRegistry
from lfs_finder.services.find_lfs_repos import FindLfsReposUseCase


class _GatedFetcher:
    """Fetcher whose repository listing waits until ``gate`` is set."""

    def __init__(self, repos):
        self.gate = asyncio.Event()
        self.repos = repos

    async def fetch_org_repos_page(self, org, page, per_page=100):
        await self.gate.wait()
        return self.repos if page == 1 else []

    async def fetch_tree(self, full_name, branch):
        return []

    async def fetch_file_content(self, full_name, path, branch):
        return ""


def _listing(count):
    return [
        {
            "id": i,
            "name": f"repo-{i}",
            "full_name": f"acme/repo-{i}",
            "html_url": f"https://github.com/acme/repo-{i}",
            "default_branch": "main",
        }
        for i in range(1, count + 1)
    ]


@pytest.fixture
def fetcher():
    return _GatedFetcher(_listing(6))


@pytest.fixture
def registry(fetcher, sleep):
    return ScanRegistry(
        lambda tokens, host, listener: FindLfsReposUseCase(
            fetcher, authenticated=bool(tokens), listener=listener, sleep=sleep
        )
    )


async def test_only_one_scan_runs_at_a_time(registry, fetcher):
    job = registry.start("acme", ghes_host=None, tokens=["t1"])
    assert job.is_running
    assert job.progress.phase == "fetching-repos"

    with pytest.raises(ScanInProgressError):
        registry.start("other", ghes_host=None, tokens=["t1"])

    fetcher.gate.set()
    await job.task
    assert job.progress.phase == "complete"
    assert job.progress.checked_repos == 6
    assert registry.get(job.id) is job

    second = registry.start("acme", ghes_host=None, tokens=["t1"])
    await second.task
    assert second.id != job.id


async def test_pause_stops_at_the_next_batch_boundary(registry, fetcher):
    job = registry.start("acme", ghes_host=None, tokens=[])
    registry.pause(job.id)
    fetcher.gate.set()
    await job.task

    assert job.progress.phase == "paused"
    assert job.state is not None
    assert job.state.scanned_repo_ids == []
    assert job.progress.message.startswith("Scan paused by user.")


async def test_unknown_scan_id(registry):
    with pytest.raises(ScanNotFoundError):
        registry.get("nope")
    with pytest.raises(ScanNotFoundError):
        registry.pause("nope")


async def test_shutdown_cancels_running_scans(registry):
    job = registry.start("acme", ghes_host=None, tokens=["t1"])
    await registry.shutdown()
    assert job.task.cancelled()


async def test_only_the_latest_finished_scans_are_kept(fetcher, sleep):
    registry = ScanRegistry(
        lambda tokens, host, listener: FindLfsReposUseCase(
            fetcher, authenticated=bool(tokens), listener=listener, sleep=sleep
        ),
        max_finished=1,
    )
    fetcher.gate.set()

    first = registry.start("acme", ghes_host=None, tokens=["t1"])
    await first.task
    second = registry.start("acme", ghes_host=None, tokens=["t1"])
    await second.task
    third = registry.start("acme", ghes_host=None, tokens=["t1"])
    await third.task

    with pytest.raises(ScanNotFoundError):
        registry.get(first.id)
    assert registry.get(second.id) is second
    assert registry.get(third.id) is third
