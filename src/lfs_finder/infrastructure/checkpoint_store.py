"""Checkpoint store — persists encoded scan states as JSON files on disk."""

from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path

from lfs_finder.domain.entities import ScanState
from lfs_finder.services.scan_state_codec import encode_scan_state

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def checkpoint_filename(org_name: str, on: date | None = None) -> str:
    """``{org}-scan-state-{YYYY-MM-DD}.json``."""
    day = (on or date.today()).isoformat()
    return f"{_UNSAFE_CHARS.sub('_', org_name)}-scan-state-{day}.json"


class CheckpointStore:
    """Writes checkpoints under a single directory, one file per org and day."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def save(self, state: ScanState) -> Path:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._dir / checkpoint_filename(state.org_name)
        path.write_text(encode_scan_state(state), encoding="utf-8")
        logger.info(
            "Saved checkpoint for %s (%d scanned, %d pending) to %s",
            state.org_name,
            len(state.scanned_repo_ids),
            len(state.pending_repo_ids),
            path,
        )
        return path
