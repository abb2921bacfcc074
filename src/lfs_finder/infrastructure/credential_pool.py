"""Credential pool — opaque bearer tokens with round-robin rotation."""

from __future__ import annotations

from collections.abc import Iterable


def mask_token(token: str) -> str:
    """Loggable label for a credential."""
    return f"{token[:8]}..."


class CredentialPool:
    """Holds zero or more credentials and tracks which one is active.

    Tokens are never inspected; they are only handed out as bearer values.
    One pool is created per scan run.
    """

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        self._tokens: list[str] = [t for t in tokens if t]
        self._index = 0

    def current(self) -> str | None:
        if not self._tokens:
            return None
        return self._tokens[self._index % len(self._tokens)]

    @property
    def current_index(self) -> int:
        return self._index % len(self._tokens) if self._tokens else 0

    def rotate(self) -> None:
        """Advance to the next credential (no-op with fewer than two)."""
        if len(self._tokens) > 1:
            self._index = (self._index + 1) % len(self._tokens)

    def count(self) -> int:
        return len(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def __bool__(self) -> bool:
        return bool(self._tokens)
