"""API routes — thin controllers that delegate to the scan registry."""

from __future__ import annotations

import json

import httpx
from fastapi import APIRouter, Depends, Response

from lfs_finder.domain.exceptions import (
    InvalidCheckpointError,
    ScanInProgressError,
    ScanNotFoundError,
)
from lfs_finder.domain.value_objects import normalize_host
from lfs_finder.infrastructure.checkpoint_store import checkpoint_filename
from lfs_finder.infrastructure.config import Settings
from lfs_finder.interface.dependencies import (
    build_inspector,
    get_app_settings,
    get_http_client,
    get_registry,
)
from lfs_finder.interface.scan_registry import ScanRegistry
from lfs_finder.interface.schemas import (
    RateLimitsResponse,
    ResumeRequest,
    ScanRequest,
    ScanStatusResponse,
)
from lfs_finder.services.rate_limit_overview import fetch_rate_limits
from lfs_finder.services.report_exporter import generate_csv, report_filename
from lfs_finder.services.scan_state_codec import decode_scan_state, encode_scan_state

router = APIRouter()


@router.post(
    "/scans",
    status_code=202,
    response_model=ScanStatusResponse,
    responses={
        409: {"description": "Another scan is running"},
        422: {"description": "Invalid organization or host"},
    },
)
async def start_scan(
    body: ScanRequest,
    registry: ScanRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> ScanStatusResponse:
    """Start scanning an organization in the background."""
    host = normalize_host(body.ghes_host if body.ghes_host is not None else settings.ghes_host)
    job = registry.start(
        body.org_name,
        ghes_host=host,
        tokens=body.tokens or settings.token_list(),
    )
    return ScanStatusResponse.from_job(job)


@router.post(
    "/scans/resume",
    status_code=202,
    response_model=ScanStatusResponse,
    responses={
        409: {"description": "Another scan is running"},
        422: {"description": "Invalid scan state file"},
    },
)
async def resume_scan(
    body: ResumeRequest,
    registry: ScanRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> ScanStatusResponse:
    """Continue a scan from a previously saved checkpoint."""
    state = decode_scan_state(json.dumps(body.checkpoint))
    if state is None:
        raise InvalidCheckpointError("Invalid scan state file format.")
    host = normalize_host(state.ghes_host)
    job = registry.start(
        state.org_name,
        ghes_host=host,
        tokens=body.tokens or settings.token_list(),
        resume=state,
    )
    return ScanStatusResponse.from_job(job)


@router.get("/scans/{scan_id}", response_model=ScanStatusResponse)
async def get_scan(
    scan_id: str, registry: ScanRegistry = Depends(get_registry)
) -> ScanStatusResponse:
    return ScanStatusResponse.from_job(registry.get(scan_id))


@router.post("/scans/{scan_id}/pause", response_model=ScanStatusResponse)
async def pause_scan(
    scan_id: str, registry: ScanRegistry = Depends(get_registry)
) -> ScanStatusResponse:
    """Stop the scan at the next batch boundary."""
    return ScanStatusResponse.from_job(registry.pause(scan_id))


@router.get("/scans/{scan_id}/checkpoint")
async def download_checkpoint(
    scan_id: str, registry: ScanRegistry = Depends(get_registry)
) -> Response:
    """The scan state as a JSON file, for resuming later."""
    job = registry.get(scan_id)
    if job.is_running:
        raise ScanInProgressError("Scan is still running; pause it before exporting its state.")
    if job.state is None:
        raise ScanNotFoundError(f"Scan '{scan_id}' has no checkpoint.")
    filename = checkpoint_filename(job.state.org_name)
    return Response(
        content=encode_scan_state(job.state),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/scans/{scan_id}/report.csv")
async def download_report(
    scan_id: str, registry: ScanRegistry = Depends(get_registry)
) -> Response:
    """Matching repositories found so far as CSV."""
    job = registry.get(scan_id)
    matched = list(job.state.matched_repos) if job.state else []
    filename = report_filename(job.org_name)
    return Response(
        content=generate_csv(matched),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/rate-limits", response_model=RateLimitsResponse)
async def rate_limits(
    ghes_host: str | None = None,
    settings: Settings = Depends(get_app_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> RateLimitsResponse:
    """Remaining quota of every configured credential."""
    host = normalize_host(ghes_host if ghes_host is not None else settings.ghes_host)
    inspector = build_inspector(client, settings, host)
    aggregate = await fetch_rate_limits(inspector, settings.token_list())
    return RateLimitsResponse.from_aggregate(aggregate)
