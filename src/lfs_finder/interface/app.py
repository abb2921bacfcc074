"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI

from lfs_finder.infrastructure.config import Settings
from lfs_finder.interface.dependencies import (
    get_app_settings,
    get_registry,
    shutdown,
    startup,
)
from lfs_finder.interface.error_handlers import register_error_handlers
from lfs_finder.interface.routes import router
from lfs_finder.interface.scan_registry import ScanRegistry


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the shared HTTP client and scan registry; cancel scans on exit."""
    await startup()
    yield
    await shutdown()


def create_app() -> FastAPI:
    """Build and wire the FastAPI application."""
    app = FastAPI(
        title="LFS Finder",
        version="1.0.0",
        description=(
            "Scans every repository of a GitHub organization for LFS config "
            "files that reference a given storage backend, with resumable "
            "checkpoints and credential rotation."
        ),
        lifespan=_lifespan,
    )

    register_error_handlers(app)
    app.include_router(router)

    # ── Health check ────────────────────────────────────────────────────

    @app.get("/health", include_in_schema=False)
    async def health(
        registry: ScanRegistry = Depends(get_registry),
        settings: Settings = Depends(get_app_settings),
    ) -> dict[str, Any]:
        return {
            "status": "ok",
            "credentials": len(settings.token_list()),
            "scan_running": registry.has_running_scan(),
        }

    return app
