"""Service layer used by CLI and future UI frontends."""

from __future__ import annotations

import threading

from webcsv.core.device_match import discover, match_strength
from webcsv.core.errors import DiscoveryError, UnknownServerError
from webcsv.core.model import Binding, ProfileSource, TypedValue, ValueKind, WebcsvConfig
from webcsv.core.poller import Poller, Publisher
from webcsv.core.profile import DeviceProfile
from webcsv.core.profile_loader import load_profiles
from webcsv.core.refresh import DEFAULT_TIMEOUT_MS, Clock, now_ms
from webcsv.core.registry import ProfileRegistry
from webcsv.transports.base import Fetcher, Pinger
from webcsv.transports.http import HttpFetcher
from webcsv.transports.tcp import TCPPinger


class WebcsvService:
    def __init__(
        self,
        *,
        fetcher: Fetcher | None = None,
        pinger: Pinger | None = None,
        clock: Clock = now_ms,
        prefer_strong: bool = False,
    ) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self.fetcher = fetcher or HttpFetcher()
        self.pinger = pinger or TCPPinger()
        self.clock = clock
        self.prefer_strong = prefer_strong
        self.config: WebcsvConfig | None = None
        self.registry = ProfileRegistry(
            loaded.ordered(),
            self.fetcher,
            self.pinger,
            clock=clock,
            prefer_strong=prefer_strong,
        )

    def list_profiles(self) -> list[ProfileSource]:
        return sorted(self.profiles.values(), key=lambda p: p.name)

    def describe_profile(self, source: ProfileSource) -> DeviceProfile:
        return DeviceProfile.from_source(source, None, self.fetcher, clock=self.clock)

    def discover(self, host: str, *, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> ProfileSource:
        source = discover(
            host,
            self.registry.library,
            self.fetcher,
            self.pinger,
            prefer_strong=self.prefer_strong,
            timeout_ms=timeout_ms,
        )
        if source is None:
            raise DiscoveryError(f"No profile matched host '{host}'.")
        return source

    def probe_all(self, host: str, *, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> dict[str, str]:
        results: dict[str, str] = {}
        for source in self.registry.library:
            strength = match_strength(source, host, self.fetcher, self.pinger, timeout_ms=timeout_ms)
            results[source.name] = "unknown" if strength is None else strength.name.lower()
        return results

    def configure(self, config: WebcsvConfig) -> None:
        self.registry.configure(config)
        self.config = config

    def current_typed_value(self, server_id: str, variable: str, kind: ValueKind) -> TypedValue | None:
        if self.registry.bound(server_id) is None:
            available = ", ".join(self.registry.server_ids()) or "<none>"
            raise UnknownServerError(f"Server '{server_id}' has no bound profile. Available: {available}")
        return self.registry.current_typed_value(server_id, variable, kind)

    def poller(self, publish: Publisher, bindings: tuple[Binding, ...] | None = None) -> Poller:
        if bindings is None:
            bindings = self.config.bindings if self.config is not None else ()
        return Poller(self.registry, bindings, publish, clock=self.clock)

    def run(self, publish: Publisher, stop: threading.Event) -> None:
        granularity = self.config.granularity_ms if self.config is not None else 10000
        self.poller(publish).run(granularity, stop)
