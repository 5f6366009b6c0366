from __future__ import annotations

import logging

import pytest

from webcsv.core.template import expand, resolve_variables


def test_expand_substitutes_known_variables() -> None:
    assert expand("http://%{host}/realtime.csv", {"host": "10.0.0.5"}) == "http://10.0.0.5/realtime.csv"


def test_expand_resolves_chains_to_fixed_point() -> None:
    variables = {"baseurl": "http://%{host}:%{port}", "host": "inverter", "port": "8080"}
    assert expand("%{baseurl}/meta.csv", variables) == "http://inverter:8080/meta.csv"


def test_expand_is_idempotent_once_resolved() -> None:
    variables = {"host": "inverter"}
    resolved = expand("http://%{host}/x", variables)
    assert expand(resolved, variables) == resolved


def test_unknown_placeholder_is_kept_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="webcsv.core.template"):
        result = expand("http://%{host}/%{missing}", {"host": "inverter"})
    assert result == "http://inverter/%{missing}"
    assert "missing" in caplog.text


def test_cyclic_variables_do_not_loop_forever(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="webcsv.core.template"):
        result = expand("%{a}", {"a": "%{b}", "b": "%{a}"})
    assert result in ("%{a}", "%{b}")
    assert "did not settle" in caplog.text


def test_resolve_variables_adds_host_and_is_read_only() -> None:
    resolved = resolve_variables({"baseurl": "http://%{host}", "host": "ignored"}, "192.168.2.1")
    assert resolved["host"] == "192.168.2.1"
    assert resolved["baseurl"] == "http://192.168.2.1"
    with pytest.raises(TypeError):
        resolved["host"] = "other"  # type: ignore[index]
