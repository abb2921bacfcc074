"""Pydantic request / response DTOs for the API boundary."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from lfs_finder.domain.entities import AggregateRateLimit, Repository
from lfs_finder.interface.scan_registry import ScanJob

_ORG_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9\-_.]*[A-Za-z0-9])?$")


class ScanRequest(BaseModel):
    """Request body for ``POST /scans``."""

    org_name: str
    ghes_host: str | None = None
    tokens: list[str] = Field(default_factory=list)

    @field_validator("org_name")
    @classmethod
    def _must_be_org(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            msg = "org_name must not be empty."
            raise ValueError(msg)
        if not _ORG_RE.match(stripped):
            msg = f"Invalid organization name: '{stripped}'."
            raise ValueError(msg)
        return stripped


class ResumeRequest(BaseModel):
    """Request body for ``POST /scans/resume``: a previously saved checkpoint."""

    checkpoint: dict[str, Any]
    tokens: list[str] = Field(default_factory=list)


class MatchedRepository(BaseModel):
    full_name: str
    html_url: str
    description: str | None = None
    size_kb: int
    pushed_at: str | None = None
    config_paths: list[str]
    matched_lines: list[str]

    @classmethod
    def from_entity(cls, repo: Repository) -> MatchedRepository:
        return cls(
            full_name=repo.full_name,
            html_url=repo.html_url,
            description=repo.description,
            size_kb=repo.size_kb,
            pushed_at=repo.pushed_at,
            config_paths=list(repo.config_paths),
            matched_lines=list(repo.matched_lines),
        )


class RateLimitOut(BaseModel):
    remaining: int
    limit: int
    reset_at: datetime | None = None


class ScanStatusResponse(BaseModel):
    """Progress and (partial) results of one scan."""

    scan_id: str
    org_name: str
    ghes_host: str | None = None
    phase: str
    total_repos: int
    checked_repos: int
    matched_count: int
    current_repo: str
    retry_message: str | None = None
    message: str | None = None
    rate_limit: RateLimitOut | None = None
    rate_limit_reset: datetime | None = None
    pending_repos: int | None = None
    matches: list[MatchedRepository] = Field(default_factory=list)

    @classmethod
    def from_job(cls, job: ScanJob) -> ScanStatusResponse:
        p = job.progress
        rate_limit = (
            RateLimitOut(
                remaining=p.rate_limit.remaining,
                limit=p.rate_limit.limit,
                reset_at=p.rate_limit.reset_at,
            )
            if p.rate_limit
            else None
        )
        state = job.state
        return cls(
            scan_id=job.id,
            org_name=job.org_name,
            ghes_host=job.ghes_host,
            phase=p.phase,
            total_repos=p.total_repos,
            checked_repos=p.checked_repos,
            matched_count=p.matched_repos,
            current_repo=p.current_repo,
            retry_message=p.retry_message,
            message=p.message,
            rate_limit=rate_limit,
            rate_limit_reset=job.result.rate_limit_reset if job.result else None,
            pending_repos=len(state.pending_repo_ids) if state and not job.is_running else None,
            matches=(
                [MatchedRepository.from_entity(r) for r in state.matched_repos]
                if state and not job.is_running
                else []
            ),
        )


class CredentialLimitOut(BaseModel):
    label: str
    username: str | None = None
    remaining: int
    limit: int
    reset_at: datetime | None = None
    shared: bool = False
    error: str | None = None


class RateLimitsResponse(BaseModel):
    """Quota across every configured credential."""

    total_remaining: int
    total_limit: int
    unique_users: int
    credentials: list[CredentialLimitOut]

    @classmethod
    def from_aggregate(cls, agg: AggregateRateLimit) -> RateLimitsResponse:
        user_ids = [c.user_id for c in agg.credentials if c.user_id is not None]
        return cls(
            total_remaining=agg.total_remaining,
            total_limit=agg.total_limit,
            unique_users=agg.unique_users,
            credentials=[
                CredentialLimitOut(
                    label=f"@{c.username}" if c.username else c.label,
                    username=c.username,
                    remaining=c.remaining,
                    limit=c.limit,
                    reset_at=c.reset_at,
                    shared=c.user_id is not None and user_ids.count(c.user_id) > 1,
                    error=c.error,
                )
                for c in agg.credentials
            ],
        )


class ErrorResponse(BaseModel):
    """Standard error envelope returned on all failure paths."""

    status: str = "error"
    message: str
