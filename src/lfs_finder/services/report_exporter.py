"""Report exporter — CSV rows for every matching repository."""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable
from datetime import date

from lfs_finder.domain.entities import Repository

REPORT_HEADERS = [
    "Repository",
    "URL",
    "Description",
    "Size (KB)",
    "Last Pushed",
    "Config Locations",
    "Matched Lines",
]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def report_filename(org_name: str, on: date | None = None) -> str:
    """``{org}-lfs-repos-{YYYY-MM-DD}.csv``."""
    day = (on or date.today()).isoformat()
    return f"{_UNSAFE_CHARS.sub('_', org_name)}-lfs-repos-{day}.csv"


def generate_csv(repos: Iterable[Repository]) -> str:
    """Header plus one row per matching repository; non-matches are skipped.

    Quoting is minimal: fields holding commas, quotes or newlines are quoted
    and embedded quotes are doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REPORT_HEADERS)
    for repo in repos:
        if not repo.is_match:
            continue
        writer.writerow(
            [
                repo.full_name,
                repo.html_url,
                repo.description or "",
                repo.size_kb,
                repo.pushed_at or "",
                "; ".join(repo.config_paths),
                "; ".join(repo.matched_lines),
            ]
        )
    return buffer.getvalue()
