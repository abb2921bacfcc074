"""FastAPI dependency injection wiring."""

from __future__ import annotations

from functools import lru_cache

import httpx

from lfs_finder.domain.ports.scan_listener import ScanListener
from lfs_finder.domain.value_objects import ApiRoot
from lfs_finder.infrastructure.checkpoint_store import CheckpointStore
from lfs_finder.infrastructure.config import Settings, get_settings
from lfs_finder.infrastructure.credential_pool import CredentialPool
from lfs_finder.infrastructure.github_rest_adapter import CredentialInspector, GitHubRestAdapter
from lfs_finder.infrastructure.rate_limit_coordinator import RateLimitCoordinator
from lfs_finder.infrastructure.resilient_transport import ResilientTransport
from lfs_finder.interface.scan_registry import ScanRegistry
from lfs_finder.services.find_lfs_repos import FindLfsReposUseCase

_http_client: httpx.AsyncClient | None = None
_registry: ScanRegistry | None = None


async def startup() -> None:
    """Initialise shared resources — called from the lifespan context manager."""
    global _http_client, _registry  # noqa: PLW0603

    settings = get_settings()
    _http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.request_timeout_seconds))
    _registry = ScanRegistry(_use_case_factory, max_finished=settings.max_finished_scans)


async def shutdown() -> None:
    """Release shared resources."""
    global _http_client, _registry  # noqa: PLW0603

    if _registry:
        await _registry.shutdown()
        _registry = None
    if _http_client:
        await _http_client.aclose()
        _http_client = None


@lru_cache(maxsize=1)
def _settings() -> Settings:
    return get_settings()


def get_app_settings() -> Settings:
    return _settings()


def get_http_client() -> httpx.AsyncClient:
    assert _http_client is not None, "startup() was not called"
    return _http_client


def get_registry() -> ScanRegistry:
    assert _registry is not None, "startup() was not called"
    return _registry


def build_use_case(
    client: httpx.AsyncClient,
    settings: Settings,
    tokens: list[str],
    ghes_host: str | None,
    listener: ScanListener,
) -> FindLfsReposUseCase:
    """Wire pool → transport → coordinator → adapter → use case for one scan."""
    pool = CredentialPool(tokens)
    transport = ResilientTransport(
        client,
        max_attempts=settings.max_attempts,
        timeout=settings.request_timeout_seconds,
        on_retry=listener.on_retry,
    )
    coordinator = RateLimitCoordinator(transport, pool, on_rate_limit=listener.on_rate_limit)
    adapter = GitHubRestAdapter(coordinator, ApiRoot.from_host(ghes_host))
    return FindLfsReposUseCase(
        adapter,
        authenticated=bool(pool),
        listener=listener,
        checkpoint_sink=CheckpointStore(settings.checkpoint_dir),
        marker=settings.marker,
        config_filename=settings.config_filename,
    )


def build_inspector(
    client: httpx.AsyncClient, settings: Settings, ghes_host: str | None
) -> CredentialInspector:
    transport = ResilientTransport(
        client,
        max_attempts=settings.max_attempts,
        timeout=settings.request_timeout_seconds,
    )
    return CredentialInspector(transport, ApiRoot.from_host(ghes_host))


def _use_case_factory(
    tokens: list[str], ghes_host: str | None, listener: ScanListener
) -> FindLfsReposUseCase:
    return build_use_case(get_http_client(), _settings(), tokens, ghes_host, listener)
