from __future__ import annotations

import pytest


class FakeFetcher:
    def __init__(self, responses: dict[str, str] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, int]] = []

    def fetch(self, url: str, timeout_ms: int) -> str | None:
        self.calls.append((url, timeout_ms))
        return self.responses.get(url)

    def count(self, url: str) -> int:
        return sum(1 for called, _ in self.calls if called == url)

    def urls(self) -> list[str]:
        return [called for called, _ in self.calls]


class FakePinger:
    def __init__(self, reachable: bool = True) -> None:
        self.is_reachable = reachable
        self.calls: list[tuple[str, int]] = []

    def reachable(self, host: str, port: int, timeout_s: float = 3.0) -> bool:
        self.calls.append((host, port))
        return self.is_reachable


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def pinger() -> FakePinger:
    return FakePinger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
