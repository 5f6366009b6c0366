"""HTTP transport implementation using requests."""

from __future__ import annotations

import logging

import requests

LOGGER = logging.getLogger(__name__)


class HttpFetcher:
    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session

    def fetch(self, url: str, timeout_ms: int) -> str | None:
        getter = self._session.get if self._session is not None else requests.get
        try:
            response = getter(url, timeout=timeout_ms / 1000.0)
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.debug("GET %s failed: %s", url, exc)
            return None
        return response.text
