from __future__ import annotations

from pathlib import Path

import pytest

from webcsv.core.profile import DeviceProfile
from webcsv.core.profile_loader import load_profiles

from conftest import FakeFetcher


def _write_profile(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _assert_skipped() -> None:
    loaded = load_profiles()
    assert sorted(loaded.profiles) == ["kaco-powador"]
    assert len(loaded.warnings) == 1
    assert loaded.warnings[0].startswith("Skipping user profile")


@pytest.fixture(autouse=True)
def _isolated_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))


def test_load_packaged_profile() -> None:
    loaded = load_profiles()
    assert "kaco-powador" in loaded.profiles
    source = loaded.profiles["kaco-powador"]
    assert source.properties["values.realtime.refresh"] == "10000"
    assert source.properties["values.meta.refresh"] == "-1"
    assert source.properties["options.cache"] == "true"

    profile = DeviceProfile.from_source(source, "192.168.2.1", FakeFetcher())
    assert profile.group("realtime").url == "http://192.168.2.1/realtime.csv"
    assert profile.group("realtime").split == ";"
    assert profile.variable("status").transformer is profile.transformer("statustable")
    assert len(profile.group("realtime").variables) == 14


def test_user_profile_is_loaded_in_name_order(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "webcsv" / "profiles" / "zz.yaml",
        """
properties.name: aaa-first
test.url: "http://%{host}/"
options.cache: on
values.a.vars: x,y
values.a.split: ","
values.a.refresh: 0
""",
    )

    loaded = load_profiles()
    assert [p.name for p in loaded.ordered()][0] == "aaa-first"
    properties = loaded.profiles["aaa-first"].properties
    assert properties["options.cache"] == "on"
    assert properties["values.a.refresh"] == "0"


def test_user_profile_overrides_packaged(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "data" / "webcsv" / "profiles" / "override.yml",
        """
properties.name: kaco-powador
properties.maturity: draft
test.url: "http://%{host}/custom.csv"
""",
    )

    loaded = load_profiles()
    assert loaded.profiles["kaco-powador"].properties["test.url"] == "http://%{host}/custom.csv"
    assert any("overrides" in warning for warning in loaded.warnings)


def test_missing_name_skips_file(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "webcsv" / "profiles" / "noname.yaml",
        """
test.url: "http://%{host}/"
values.a.vars: x
""",
    )

    _assert_skipped()


def test_nested_values_skip_file(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "webcsv" / "profiles" / "nested.yaml",
        """
properties.name: nested
values:
  a:
    vars: x
""",
    )

    _assert_skipped()


def test_duplicate_yaml_keys_skip_file(tmp_path: Path) -> None:
    _write_profile(
        tmp_path / "cfg" / "webcsv" / "profiles" / "dup.yaml",
        """
properties.name: dup
values.a.vars: x
values.a.vars: y
""",
    )

    _assert_skipped()


def test_broken_user_profile_does_not_hide_valid_ones(tmp_path: Path) -> None:
    _write_profile(tmp_path / "cfg" / "webcsv" / "profiles" / "broken.yaml", "properties.name: [unclosed\n")
    _write_profile(
        tmp_path / "data" / "webcsv" / "profiles" / "ok.yaml",
        """
properties.name: meter
test.url: "http://%{host}/meter.csv"
""",
    )

    loaded = load_profiles()
    assert sorted(loaded.profiles) == ["kaco-powador", "meter"]
    assert any("broken.yaml" in warning for warning in loaded.warnings)
