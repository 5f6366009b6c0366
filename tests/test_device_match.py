from __future__ import annotations

import itertools

from webcsv.core.device_match import MatchStrength, discover, match_strength, probe
from webcsv.core.model import ProfileSource

from conftest import FakeFetcher, FakePinger

HOST = "10.0.0.9"


def _source(name: str, test_path: str | None, expr: str | None = None, **extra: str) -> ProfileSource:
    properties = {"properties.name": name, **extra}
    if test_path is not None:
        properties["test.url"] = f"http://%{{host}}{test_path}"
    if expr is not None:
        properties["test.expr"] = expr
    return ProfileSource(name=name, origin="<test>", properties=properties)


A = _source("a", "/a.csv", '"^Alpha.*$"')
B = _source("b", "/b.csv", '"^Beta \\d+$"')
C = _source("c", "/c.csv", '"^Gamma.*$"')


def _fetcher() -> FakeFetcher:
    return FakeFetcher(
        {
            f"http://{HOST}/a.csv": "nothing to see\n",
            f"http://{HOST}/b.csv": "header\n  Beta 14  \n",
            f"http://{HOST}/c.csv": "Delta\n",
        }
    )


def test_discover_returns_only_matching_profile_in_any_order(pinger: FakePinger) -> None:
    for order in itertools.permutations([A, B, C]):
        assert discover(HOST, order, _fetcher(), pinger) is B


def test_discover_stops_probing_after_first_match(pinger: FakePinger) -> None:
    fetcher = _fetcher()
    discover(HOST, [A, B, C], fetcher, pinger)
    assert fetcher.urls() == [f"http://{HOST}/a.csv", f"http://{HOST}/b.csv"]


def test_discover_returns_none_when_exhausted(pinger: FakePinger) -> None:
    assert discover(HOST, [A, C], _fetcher(), pinger) is None


def test_weak_match_wins_by_default_first_match_policy(pinger: FakePinger) -> None:
    weak = _source("0-weak", "/a.csv")
    assert discover(HOST, [weak, B], _fetcher(), pinger) is weak


def test_prefer_strong_keeps_scanning_after_weak_match(pinger: FakePinger) -> None:
    weak = _source("0-weak", "/a.csv")
    assert discover(HOST, [weak, A, B], _fetcher(), pinger, prefer_strong=True) is B
    assert discover(HOST, [weak, A, C], _fetcher(), pinger, prefer_strong=True) is weak


def test_probe_without_test_url_is_unknown(pinger: FakePinger) -> None:
    fetcher = _fetcher()
    assert probe(_source("x", None), HOST, fetcher, pinger) is None
    assert fetcher.calls == []
    assert pinger.calls == []


def test_unreachable_host_does_not_fetch() -> None:
    fetcher = _fetcher()
    assert probe(B, HOST, fetcher, FakePinger(reachable=False)) is False
    assert fetcher.calls == []


def test_ping_only_probe_skips_fetch(pinger: FakePinger) -> None:
    fetcher = _fetcher()
    assert probe(C, HOST, fetcher, pinger, full_check=False) is True
    assert fetcher.calls == []


def test_failed_fetch_is_no_match(pinger: FakePinger) -> None:
    assert match_strength(_source("d", "/missing.csv", '"x"'), HOST, _fetcher(), pinger) is MatchStrength.NONE


def test_probe_port_comes_from_url_or_override(pinger: FakePinger) -> None:
    with_port = ProfileSource(
        name="p",
        origin="<test>",
        properties={"properties.name": "p", "test.url": "http://%{host}:8080/x"},
    )
    probe(with_port, HOST, FakeFetcher(), pinger, full_check=False)
    override = _source("q", "/x", **{"test.port": "8443"})
    probe(override, HOST, FakeFetcher(), pinger, full_check=False)
    plain = _source("r", "/x")
    probe(plain, HOST, FakeFetcher(), pinger, full_check=False)

    assert pinger.calls == [(HOST, 8080), (HOST, 8443), (HOST, 80)]
