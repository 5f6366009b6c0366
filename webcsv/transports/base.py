"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol


class Fetcher(Protocol):
    def fetch(self, url: str, timeout_ms: int) -> str | None:
        """Return the response body, or None when the request failed."""


class Pinger(Protocol):
    def reachable(self, host: str, port: int, timeout_s: float = 3.0) -> bool:
        """Return True when a TCP connection to host:port can be opened."""
