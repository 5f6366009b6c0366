from __future__ import annotations

from pathlib import Path

import pytest

from webcsv.api import Client, TypedValue, UnknownServerError, ValueKind

from conftest import FakeFetcher, FakePinger

HOST = "192.168.2.20"


@pytest.fixture(autouse=True)
def _isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def _fetcher() -> FakeFetcher:
    return FakeFetcher(
        {
            f"http://{HOST}/meta.csv": "1412345;Powador 14.0 TL3;;;;;;;;;;;;;\n",
            f"http://{HOST}/realtime.csv": "1;2;3;4;5;6;7;8;9;10;11;1550;45;4;\n",
            f"http://{HOST}/statustable.csv": "4;Feed-in (MPP);\n",
        }
    )


def test_public_client_list_profiles() -> None:
    client = Client(fetcher=FakeFetcher(), pinger=FakePinger())
    profiles = client.list_profiles()
    assert profiles
    assert any(p.name == "kaco-powador" for p in profiles)
    assert client.load_warnings == ()


def test_public_client_discover() -> None:
    client = Client(fetcher=_fetcher(), pinger=FakePinger())
    assert client.discover(HOST).name == "kaco-powador"


def test_public_client_configure_from_file_and_get_value(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"servers:\n  inv:\n    host: {HOST}\nitems:\n  - server: inv\n    variable: status\n",
        encoding="utf-8",
    )
    client = Client(fetcher=_fetcher(), pinger=FakePinger())
    config = client.configure(path)

    assert [binding.name for binding in config.bindings] == ["inv.status"]
    assert client.get_value("inv", "status") == TypedValue(ValueKind.TEXT, "Feed-in (MPP)")

    published: list[str] = []
    client.poller(lambda binding, value: published.append(f"{binding.name}={value}")).tick()
    assert published == ["inv.status=Feed-in (MPP)"]


def test_public_client_unknown_server() -> None:
    client = Client(fetcher=_fetcher(), pinger=FakePinger())
    with pytest.raises(UnknownServerError):
        client.get_value("nope", "status")
