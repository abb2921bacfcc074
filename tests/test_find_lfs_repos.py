import asyncio

import pytest

from lfs_finder.domain.entities import ScanOutcome
from lfs_finder.domain.exceptions import OrganizationNotFoundError
from lfs_finder.infrastructure.checkpoint_store import CheckpointStore
from lfs_finder.services.find_lfs_repos import FindLfsReposUseCase
from lfs_finder.services.scan_state_codec import decode_scan_state


class _RecordingSink:
    def __init__(self):
        self.saved = []

    def save(self, state):
        self.saved.append(state)
        return None


class _BrokenSink:
    def save(self, state):
        raise OSError("disk full")


def _use_case(adapter, sleep, listener=None, sink=None, authenticated=True):
    return FindLfsReposUseCase(
        adapter,
        authenticated=authenticated,
        listener=listener,
        checkpoint_sink=sink,
        sleep=sleep,
    )


async def test_scans_an_organization_end_to_end(fake_github, make_adapter, listener, sleep):
    fake_github.populate(12, matching={5, 9})
    sink = _RecordingSink()

    result = await _use_case(make_adapter(("t1",)), sleep, listener, sink).execute(" acme ")

    assert result.outcome is ScanOutcome.COMPLETE
    assert result.state.org_name == "acme"
    assert [r.full_name for r in result.matched_repos] == ["acme/repo-5", "acme/repo-9"]
    assert listener.pages == [(12, 1)]
    assert listener.batches[-1] == (12, "repo-12", 2)
    assert sink.saved == []


async def test_enterprise_host_is_recorded_on_the_state(fake_github, make_adapter, sleep):
    fake_github.populate(2, matching={1})
    result = await _use_case(make_adapter(("t1",), host="ghe.example.com"), sleep).execute(
        "acme", ghes_host="ghe.example.com"
    )
    assert result.state.ghes_host == "ghe.example.com"
    assert all(r.url.host == "ghe.example.com" for r in fake_github.requests)


async def test_rate_limited_scan_is_persisted(fake_github, make_adapter, sleep):
    fake_github.populate(10, matching={1})
    fake_github.rate_limit_on_tree = "acme/repo-4"
    sink = _RecordingSink()

    result = await _use_case(make_adapter(("t1",)), sleep, sink=sink).execute("acme")

    assert result.outcome is ScanOutcome.RATE_LIMITED
    assert sink.saved == [result.state]


async def test_paused_scan_is_not_persisted(fake_github, make_adapter, sleep):
    fake_github.populate(10, matching=set())
    cancel = asyncio.Event()
    cancel.set()
    sink = _RecordingSink()

    result = await _use_case(make_adapter(("t1",)), sleep, sink=sink).execute(
        "acme", cancel=cancel
    )

    assert result.outcome is ScanOutcome.PAUSED
    assert sink.saved == []


async def test_failing_sink_does_not_hide_the_result(fake_github, make_adapter, sleep):
    fake_github.populate(4, matching=set())
    fake_github.blocked_trees.add("acme/repo-1")

    result = await _use_case(make_adapter(("t1",)), sleep, sink=_BrokenSink()).execute("acme")

    assert result.outcome is ScanOutcome.NETWORK_ERROR


async def test_listing_failure_propagates(fake_github, make_adapter, sleep):
    sink = _RecordingSink()
    with pytest.raises(OrganizationNotFoundError):
        await _use_case(make_adapter(), sleep, sink=sink).execute("nobody")
    assert sink.saved == []


async def test_requires_an_organization_or_a_state(make_adapter, sleep):
    with pytest.raises(ValueError):
        await _use_case(make_adapter(), sleep).execute("  ")


async def test_resume_skips_listing_and_finishes(fake_github, make_adapter, sleep, tmp_path):
    fake_github.populate(10, matching={2, 8})
    fake_github.rate_limit_on_tree = "acme/repo-6"
    store = CheckpointStore(tmp_path)

    first = await _use_case(make_adapter(("t1",)), sleep, sink=store).execute("acme")
    assert first.outcome is ScanOutcome.RATE_LIMITED

    [saved] = list(tmp_path.glob("acme-scan-state-*.json"))
    state = decode_scan_state(saved.read_text(encoding="utf-8"))
    assert state is not None
    assert state.scanned_repo_ids == [1, 2, 3, 4, 5]

    fake_github.rate_limited = False
    fake_github.rate_limit_on_tree = None
    fake_github.requests.clear()
    resumed = await _use_case(make_adapter(("t1",)), sleep, sink=store).execute(resume=state)

    assert resumed.outcome is ScanOutcome.COMPLETE
    assert fake_github.requests_to("/orgs/") == []
    assert [r.id for r in resumed.matched_repos] == [2, 8]
