"""Scan state codec — JSON checkpoint documents validated with pydantic.

The document is self-describing (it carries a ``format`` tag and version) so
a checkpoint saved by one process can be resumed by another.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from lfs_finder.domain.entities import MatchStatus, Repository, ScanState

logger = logging.getLogger(__name__)

FORMAT_TAG = "lfs-finder/scan-state"
FORMAT_VERSION = 1


class _RepositoryDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    full_name: str
    html_url: str
    default_branch: str
    size_kb: int = 0
    pushed_at: str | None = None
    description: str | None = None
    status: MatchStatus = MatchStatus.UNKNOWN
    matched_lines: list[str] = Field(default_factory=list)
    config_paths: list[str] = Field(default_factory=list)


class _ScanStateDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    format: str = FORMAT_TAG
    version: int = FORMAT_VERSION
    org_name: StrictStr
    ghes_host: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    all_repos: list[_RepositoryDocument]
    scanned_repo_ids: list[int]
    pending_repo_ids: list[int]
    matched_repos: list[_RepositoryDocument]
    is_complete: bool = False
    last_error: str | None = None


def encode_scan_state(state: ScanState) -> str:
    """Serialise *state* to an indented JSON document."""
    doc = _ScanStateDocument(
        org_name=state.org_name,
        ghes_host=state.ghes_host,
        created_at=state.created_at,
        all_repos=[_RepositoryDocument(**asdict(r)) for r in state.all_repos],
        scanned_repo_ids=list(state.scanned_repo_ids),
        pending_repo_ids=list(state.pending_repo_ids),
        matched_repos=[_RepositoryDocument(**asdict(r)) for r in state.matched_repos],
        is_complete=state.is_complete,
        last_error=state.last_error,
    )
    return doc.model_dump_json(indent=2)


def decode_scan_state(text: str | bytes) -> ScanState | None:
    """Parse a checkpoint document; ``None`` if it is malformed or inconsistent."""
    try:
        doc = _ScanStateDocument.model_validate_json(text)
    except ValidationError as exc:
        logger.warning("Rejected scan state document: %d validation error(s)", exc.error_count())
        logger.debug("Scan state validation errors: %s", exc.errors())
        return None

    problem = _consistency_problem(doc)
    if problem:
        logger.warning("Rejected scan state document: %s", problem)
        return None

    return ScanState(
        org_name=doc.org_name,
        ghes_host=doc.ghes_host,
        created_at=doc.created_at,
        all_repos=[_to_repository(r) for r in doc.all_repos],
        scanned_repo_ids=doc.scanned_repo_ids,
        pending_repo_ids=doc.pending_repo_ids,
        matched_repos=[_to_repository(r) for r in doc.matched_repos],
        is_complete=doc.is_complete,
        last_error=doc.last_error,
    )


def _consistency_problem(doc: _ScanStateDocument) -> str | None:
    if doc.format != FORMAT_TAG:
        return f"unknown format '{doc.format}'"
    if doc.version > FORMAT_VERSION:
        return f"unsupported version {doc.version}"

    all_ids = {r.id for r in doc.all_repos}
    scanned = set(doc.scanned_repo_ids)
    pending = set(doc.pending_repo_ids)
    if len(scanned) != len(doc.scanned_repo_ids):
        return "duplicate scanned ids"
    if scanned & pending:
        return "scanned and pending ids overlap"
    if scanned | pending != all_ids:
        return "scanned and pending ids do not cover the repository list"
    if not {r.id for r in doc.matched_repos} <= scanned:
        return "matched repositories that were never scanned"
    if doc.is_complete and pending:
        return "complete scan with pending repositories"
    return None


def _to_repository(doc: _RepositoryDocument) -> Repository:
    return Repository(**doc.model_dump())
