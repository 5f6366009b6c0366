"""Bound profiles per configured server."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from types import MappingProxyType

from webcsv.core.device_match import discover
from webcsv.core.model import ProfileSource, TypedValue, ValueKind, WebcsvConfig
from webcsv.core.profile import DeviceProfile
from webcsv.core.refresh import Clock, now_ms
from webcsv.transports.base import Fetcher, Pinger

LOGGER = logging.getLogger(__name__)


class ProfileRegistry:
    """Maps server ids to `DeviceProfile` instances bound to their host.

    `configure` builds a complete new map and swaps it in with one
    assignment; readers always work on the map they looked up first.
    """

    def __init__(
        self,
        library: Sequence[ProfileSource],
        fetcher: Fetcher,
        pinger: Pinger,
        *,
        clock: Clock = now_ms,
        prefer_strong: bool = False,
    ) -> None:
        self.library = tuple(library)
        self._fetcher = fetcher
        self._pinger = pinger
        self._clock = clock
        self._prefer_strong = prefer_strong
        self._servers: MappingProxyType[str, DeviceProfile] = MappingProxyType({})

    def configure(self, config: WebcsvConfig) -> None:
        by_name = {source.name: source for source in self.library}
        servers: dict[str, DeviceProfile] = {}
        for server_id, server in config.servers.items():
            if server.profile is not None:
                source = by_name.get(server.profile)
                if source is None:
                    LOGGER.error("Server %s pins unknown profile %s", server_id, server.profile)
                    continue
            else:
                source = discover(
                    server.host,
                    self.library,
                    self._fetcher,
                    self._pinger,
                    prefer_strong=self._prefer_strong,
                    timeout_ms=config.timeout_ms,
                )
                if source is None:
                    LOGGER.warning("No profile found for server %s (%s), it will report no data", server_id, server.host)
                    continue

            servers[server_id] = DeviceProfile.from_source(
                source,
                server.host,
                self._fetcher,
                clock=self._clock,
                timeout_ms=config.timeout_ms,
            )
            LOGGER.info("Server %s (%s) bound to profile %s", server_id, server.host, source.name)

        self._servers = MappingProxyType(servers)

    def server_ids(self) -> list[str]:
        return sorted(self._servers)

    def bound(self, server_id: str) -> DeviceProfile | None:
        return self._servers.get(server_id)

    def set_timeout(self, timeout_ms: int) -> None:
        for profile in self._servers.values():
            profile.set_timeout(timeout_ms)

    def current_typed_value(self, server_id: str, variable: str, kind: ValueKind) -> TypedValue | None:
        profile = self._servers.get(server_id)
        if profile is None:
            LOGGER.warning("Server %s is not configured or has no matching profile", server_id)
            return None
        return profile.typed_value(variable, kind)
