"""Port: checkpoint sink — where interrupted scans are persisted."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from lfs_finder.domain.entities import ScanState


class CheckpointSink(Protocol):
    def save(self, state: ScanState) -> Path:
        """Persist *state* and return where it was written."""
        ...
