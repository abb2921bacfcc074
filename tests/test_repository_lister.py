import pytest

from lfs_finder.domain.entities import MatchStatus
from lfs_finder.domain.exceptions import OrganizationNotFoundError
from lfs_finder.services.repository_lister import RepositoryLister


async def test_pages_until_short_page(fake_github, make_adapter, listener):
    fake_github.populate(150, matching=set())
    lister = RepositoryLister(make_adapter(("t1",)), listener)

    repos = await lister.list_repositories("acme")

    assert len(repos) == 150
    assert listener.pages == [(100, 1), (150, 2)]
    pages = [r.url.params["page"] for r in fake_github.requests_to("/orgs/acme/repos")]
    assert pages == ["1", "2"]
    first = fake_github.requests[0].url.params
    assert first["per_page"] == "100"
    assert first["sort"] == "pushed"


async def test_exact_multiple_of_page_size_ends_on_empty_page(fake_github, make_adapter, listener):
    fake_github.populate(100, matching=set())
    lister = RepositoryLister(make_adapter(), listener)

    repos = await lister.list_repositories("acme")

    assert len(repos) == 100
    assert len(fake_github.requests) == 2
    assert listener.pages == [(100, 1)]


async def test_listing_maps_into_unscanned_repositories(fake_github, make_adapter):
    fake_github.add_repo(42, "tools", branch="develop", description="Build tools")
    repos = await RepositoryLister(make_adapter()).list_repositories("acme")

    [repo] = repos
    assert repo.id == 42
    assert repo.full_name == "acme/tools"
    assert repo.html_url == "https://github.com/acme/tools"
    assert repo.default_branch == "develop"
    assert repo.size_kb == 420
    assert repo.description == "Build tools"
    assert repo.status is MatchStatus.UNKNOWN
    assert repo.matched_lines == [] and repo.config_paths == []


async def test_unknown_organization(fake_github, make_adapter):
    with pytest.raises(OrganizationNotFoundError, match="nobody"):
        await RepositoryLister(make_adapter()).list_repositories("nobody")


async def test_existing_list_skips_the_network(fake_github, make_adapter):
    fake_github.populate(3, matching=set())
    lister = RepositoryLister(make_adapter())
    first = await lister.list_repositories("acme")
    fake_github.requests.clear()

    again = await lister.list_repositories("acme", existing=first)

    assert again is first
    assert fake_github.requests == []


async def test_enterprise_host_rewrites_api_root(fake_github, make_adapter):
    fake_github.populate(1, matching=set())
    await RepositoryLister(make_adapter(host="ghe.example.com")).list_repositories("acme")
    url = fake_github.requests[0].url
    assert url.host == "ghe.example.com"
    assert url.path == "/api/v3/orgs/acme/repos"
