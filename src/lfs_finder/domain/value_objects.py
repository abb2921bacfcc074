"""Value objects — self-validating domain primitives."""

from __future__ import annotations

import re
from dataclasses import dataclass

from lfs_finder.domain.exceptions import InvalidHostError

_PUBLIC_API = "https://api.github.com"
_PUBLIC_HOSTS = frozenset({"github.com", "www.github.com", "api.github.com"})

_HOST_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9\-.]*[A-Za-z0-9])?(?::\d{1,5})?$")


def normalize_host(raw: str | None) -> str | None:
    """Reduce a user-typed host to ``hostname[:port]``; ``None`` means github.com.

    ``https://ghe.example.com/`` and ``ghe.example.com`` normalise to the same
    value.  Anything that still is not a plain hostname is rejected.
    """
    if raw is None:
        return None
    host = raw.strip()
    host = re.sub(r"^https?://", "", host, flags=re.IGNORECASE)
    host = host.split("/", 1)[0].lower()
    if not host or host in _PUBLIC_HOSTS:
        return None
    if not _HOST_RE.match(host):
        raise InvalidHostError(
            f"Invalid GitHub host: '{raw}'. Expected a hostname such as ghe.example.com"
        )
    return host


@dataclass(frozen=True, slots=True)
class ApiRoot:
    """Base URL of the REST API for github.com or a self-hosted deployment.

    Enterprise servers expose the same path structure under ``/api/v3``.
    """

    base_url: str
    host: str | None = None

    @classmethod
    def from_host(cls, raw: str | None = None) -> ApiRoot:
        host = normalize_host(raw)
        if host is None:
            return cls(base_url=_PUBLIC_API)
        return cls(base_url=f"https://{host}/api/v3", host=host)

    @property
    def is_enterprise(self) -> bool:
        return self.host is not None

    def url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"
