"""Stable public API for building tooling on top of webcsv.

This module is the supported integration surface for third-party callers,
e.g. a home automation bridge publishing device values.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from webcsv.core.config import build_config, load_config
from webcsv.core.errors import (
    ConfigError,
    DiscoveryError,
    ProfileLoadError,
    ProfileValidationError,
    UnknownServerError,
    WebcsvError,
)
from webcsv.core.model import (
    Binding,
    ProfileSource,
    ServerConfig,
    TypedValue,
    ValueKind,
    WebcsvConfig,
)
from webcsv.core.poller import Poller, Publisher
from webcsv.core.service import WebcsvService
from webcsv.transports.base import Fetcher, Pinger

__all__ = [
    "WebcsvError",
    "ConfigError",
    "DiscoveryError",
    "ProfileLoadError",
    "ProfileValidationError",
    "UnknownServerError",
    "Binding",
    "ProfileSource",
    "ServerConfig",
    "TypedValue",
    "ValueKind",
    "WebcsvConfig",
    "Poller",
    "build_config",
    "Client",
]


class Client:
    """Public client for interacting with webcsv core capabilities.

    A `Client` wraps profile loading, device discovery and value polling
    behind a stable API. Values that are not available in a given tick come
    back as `None`, they are never errors.
    """

    def __init__(
        self,
        *,
        fetcher: Fetcher | None = None,
        pinger: Pinger | None = None,
        prefer_strong: bool = False,
    ) -> None:
        self._service = WebcsvService(fetcher=fetcher, pinger=pinger, prefer_strong=prefer_strong)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def list_profiles(self) -> list[ProfileSource]:
        return self._service.list_profiles()

    def discover(self, host: str) -> ProfileSource:
        return self._service.discover(host)

    def configure(self, config: WebcsvConfig | Path | None = None) -> WebcsvConfig:
        if not isinstance(config, WebcsvConfig):
            config = load_config(config)
        self._service.configure(config)
        return config

    def get_value(self, server_id: str, variable: str, kind: ValueKind = ValueKind.TEXT) -> TypedValue | None:
        return self._service.current_typed_value(server_id, variable, kind)

    def poller(self, publish: Publisher) -> Poller:
        return self._service.poller(publish)
