"""Declarative device profiles.

A profile is a flat set of dotted keys, for example::

    properties.name = kaco-powador
    vars.baseurl = http://%{host}
    values.realtime.vars = t,udc1,pdc,status
    values.realtime.split = ";"
    values.realtime.url = %{baseurl}/realtime.csv
    values.realtime.transforms.status = statustable,statid,statdesc
    transforms.statustable.url = %{baseurl}/status.csv
    transforms.statustable.expr = "^\\W*(\\d+),(.*?)\\W*$",statid,statdesc

Keys may come in any order, so `ProfileBuilder` first creates every named
group and transformer and only then attaches their attributes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlsplit

from webcsv.core.model import ProfileSource, TypedValue, ValueKind
from webcsv.core.refresh import (
    DEFAULT_REFRESH_MS,
    DEFAULT_TIMEOUT_MS,
    Clock,
    now_ms,
    parse_cache_flag,
    parse_refresh,
)
from webcsv.core.template import expand, has_placeholders, resolve_variables
from webcsv.core.transformer import Transformer
from webcsv.core.values import ValueGroup, VariableValue
from webcsv.transports.base import Fetcher

LOGGER = logging.getLogger(__name__)

MATURITIES = ("draft", "unstable", "testing", "stable", "rocksolid")
_TRANSFORM_EXPR_RE = re.compile(r'^"([^"]+)",(.*)$')
_IGNORED_NAMESPACES = ("properties", "name", "test")
_GROUP_ATTRS = ("vars", "factors", "types", "split", "expr", "url", "refresh", "cache")
_TRANSFORM_ATTRS = ("url", "types", "expr", "refresh", "cache")


def unquote(value: str) -> str:
    """Strip one pair of surrounding double quotes as used in profile values."""
    value = value.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",")]


def compile_pattern(value: str, *, context: str) -> re.Pattern[str] | None:
    try:
        return re.compile(value)
    except re.error as exc:
        LOGGER.error("Invalid regular expression %r for %s: %s", value, context, exc)
        return None


@dataclass(frozen=True)
class ProbeSpec:
    url: str | None
    pattern: re.Pattern[str] | None
    port: int | None

    def resolve_port(self, resolved_url: str) -> int:
        if self.port is not None:
            return self.port
        parts = urlsplit(resolved_url)
        try:
            port = parts.port
        except ValueError:
            port = None
        if port is not None:
            return port
        return 443 if parts.scheme == "https" else 80


def probe_spec(properties: Mapping[str, str], name: str) -> ProbeSpec:
    url = properties.get("test.url")
    expr = properties.get("test.expr")
    pattern = compile_pattern(unquote(expr), context=f"{name} test.expr") if expr else None
    port: int | None = None
    if "test.port" in properties:
        try:
            port = int(properties["test.port"])
        except ValueError:
            LOGGER.error("test.port=%s in %s is not a port number", properties["test.port"], name)
    return ProbeSpec(url=url.strip() if url else None, pattern=pattern, port=port)


def source_variables(properties: Mapping[str, str], host: str | None) -> Mapping[str, str]:
    raw: dict[str, str] = {}
    for key, value in properties.items():
        parts = key.split(".")
        if parts[0] == "vars" and len(parts) == 2:
            raw[parts[1]] = value
    return resolve_variables(raw, host)


class DeviceProfile:
    """A profile bound to one host: named groups, transformers and variables."""

    def __init__(
        self,
        name: str,
        *,
        host: str | None,
        variables: Mapping[str, str],
        options: Mapping[str, str],
        probe: ProbeSpec,
        maturity: str = "draft",
        author: str = "",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.name = name
        self.host = host
        self.variables = variables
        self.options = options
        self.probe = probe
        self.maturity = maturity
        self.author = author
        self.timeout_ms = timeout_ms
        self.groups: dict[str, ValueGroup] = {}
        self.transformers: dict[str, Transformer] = {}
        self._value_index: dict[str, VariableValue] = {}

    @classmethod
    def from_source(
        cls,
        source: ProfileSource,
        host: str | None,
        fetcher: Fetcher,
        *,
        clock: Clock = now_ms,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> DeviceProfile:
        return ProfileBuilder(source.properties, host, fetcher, clock=clock, timeout_ms=timeout_ms).build()

    def __repr__(self) -> str:
        return f"DeviceProfile(name={self.name!r}, host={self.host!r}, groups={sorted(self.groups)!r})"

    def register(self, group: ValueGroup) -> None:
        self.groups[group.name] = group
        for value in group.values():
            if value.name in self._value_index:
                LOGGER.warning(
                    "Variable %s of values.%s shadows the one from values.%s in %s",
                    value.name, group.name, self._value_index[value.name].group.name, self.name,
                )
            self._value_index[value.name] = value

    def variable_names(self) -> list[str]:
        return sorted(self._value_index)

    def variable(self, name: str) -> VariableValue | None:
        return self._value_index.get(name)

    def group(self, name: str) -> ValueGroup | None:
        return self.groups.get(name)

    def transformer(self, name: str) -> Transformer | None:
        return self.transformers.get(name)

    def set_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        for group in self.groups.values():
            group.timeout_ms = timeout_ms
        for transformer in self.transformers.values():
            transformer.timeout_ms = timeout_ms

    def current_value(self, name: str) -> str | None:
        value = self.variable(name)
        if value is None:
            LOGGER.warning("Variable %s is not defined in profile %s", name, self.name)
            return None
        return value.current_value()

    def typed_value(self, name: str, kind: ValueKind) -> TypedValue | None:
        value = self.variable(name)
        if value is None:
            LOGGER.warning("Variable %s is not defined in profile %s", name, self.name)
            return None
        return value.typed_value(kind)


class ProfileBuilder:
    """Two-phase parser turning a property set into a `DeviceProfile`."""

    def __init__(
        self,
        properties: Mapping[str, str],
        host: str | None,
        fetcher: Fetcher,
        *,
        clock: Clock = now_ms,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.properties = properties
        self.host = host
        self._fetcher = fetcher
        self._clock = clock
        self._timeout_ms = timeout_ms

    def build(self) -> DeviceProfile:
        props = self.properties
        name = props.get("properties.name", props.get("name", "undefined"))
        maturity = props.get("properties.maturity", "draft")
        author = props.get("properties.author", "")
        _log_maturity(name, maturity, author)

        variables = source_variables(props, self.host)
        options = self._namespace("options")
        profile = DeviceProfile(
            name,
            host=self.host,
            variables=variables,
            options=options,
            probe=probe_spec(props, name),
            maturity=maturity,
            author=author,
            timeout_ms=self._timeout_ms,
        )

        refresh = parse_refresh(options.get("refresh"), DEFAULT_REFRESH_MS, context="options.refresh")
        cache = parse_cache_flag(options.get("cache"), context="options.cache")

        # Phase 1: create every named group and transformer.
        for key, value in props.items():
            parts = key.split(".")
            if parts[0] == "values" and len(parts) == 3 and parts[2] == "vars":
                group_vars = [var for var in _split_list(value) if var]
                if not group_vars:
                    LOGGER.error("%s in %s declares no variables", key, name)
                    continue
                profile.register(
                    ValueGroup(
                        parts[1],
                        group_vars,
                        self._fetcher,
                        clock=self._clock,
                        refresh=refresh,
                        cache_enabled=cache,
                        timeout_ms=self._timeout_ms,
                    )
                )
            elif parts[0] == "transforms" and len(parts) == 3 and parts[1] not in profile.transformers:
                profile.transformers[parts[1]] = Transformer(
                    parts[1],
                    self._fetcher,
                    clock=self._clock,
                    refresh=refresh,
                    cache_enabled=cache,
                    timeout_ms=self._timeout_ms,
                )

        # Phase 2: attach attributes. Transformers first, groups bind to them.
        for key, value in props.items():
            parts = key.split(".")
            if parts[0] == "transforms":
                self._attach_transform(profile, key, parts, value, refresh)
        for key, value in props.items():
            parts = key.split(".")
            namespace = parts[0]
            if namespace == "values":
                self._attach_value(profile, key, parts, value, refresh)
            elif namespace in ("vars", "options"):
                if len(parts) != 2:
                    LOGGER.error("Malformed property key %s in %s", key, name)
            elif namespace not in _IGNORED_NAMESPACES and namespace != "transforms":
                LOGGER.error("Unknown property key %s in %s, ignoring it", key, name)

        return profile

    def _namespace(self, prefix: str) -> dict[str, str]:
        found: dict[str, str] = {}
        for key, value in self.properties.items():
            parts = key.split(".")
            if parts[0] == prefix and len(parts) == 2:
                found[parts[1]] = value
        return found

    def _url(self, template: str, variables: Mapping[str, str], *, context: str) -> str | None:
        url = expand(template.strip(), variables, context=context)
        if has_placeholders(url):
            LOGGER.error("Url %s of %s is malformed, expanded from %s", url, context, template)
            return url
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            LOGGER.error("Url %s of %s is malformed, expanded from %s", url, context, template)
        return url

    def _attach_transform(
        self, profile: DeviceProfile, key: str, parts: list[str], value: str, default_refresh: int
    ) -> None:
        if len(parts) != 3 or parts[2] not in _TRANSFORM_ATTRS:
            LOGGER.error(
                "Wrong property key %s for transforms property type. Needs 3 parts, one of %s.",
                key, ", ".join(_TRANSFORM_ATTRS),
            )
            return
        transformer = profile.transformers[parts[1]]
        attr = parts[2]
        if attr == "url":
            transformer.url = self._url(value, profile.variables, context=key)
        elif attr == "types":
            transformer.types = tuple(_split_list(value))
        elif attr == "expr":
            match = _TRANSFORM_EXPR_RE.match(value.strip())
            if match is None:
                LOGGER.error('Transformation expression %s invalid. Syntax is: "<regex>",<relation>,...', key)
                return
            pattern = compile_pattern(match.group(1), context=key)
            if pattern is None:
                return
            relations = tuple(_split_list(match.group(2)))
            if pattern.groups > len(relations):
                LOGGER.error(
                    "%s has %d groups but only %d relation names", key, pattern.groups, len(relations)
                )
            transformer.pattern = pattern
            transformer.relations = relations
        elif attr == "refresh":
            transformer.refresh = parse_refresh(value, default_refresh, context=key)
        elif attr == "cache":
            transformer.cache_enabled = parse_cache_flag(value, context=key)

    def _attach_value(
        self, profile: DeviceProfile, key: str, parts: list[str], value: str, default_refresh: int
    ) -> None:
        is_binding = len(parts) == 4 and parts[2] == "transforms"
        if not is_binding and (len(parts) != 3 or parts[2] not in _GROUP_ATTRS):
            LOGGER.error(
                "Wrong property key %s for values property type. "
                "Needs 4 parts with transforms, otherwise 3 parts, separated by dot.",
                key,
            )
            return
        group = profile.groups.get(parts[1])
        if group is None:
            LOGGER.error("There are no vars specified for values.%s, ignoring %s.", parts[1], key)
            return

        attr = parts[2]
        if is_binding:
            self._bind_transform(profile, group, key, parts[3], value)
        elif attr == "vars":
            return
        elif attr == "factors":
            group.set_factors(_split_list(value))
        elif attr == "types":
            group.set_types(_split_list(value))
        elif attr == "split":
            split = unquote(value)
            if compile_pattern(split, context=key) is not None:
                group.split = split
        elif attr == "expr":
            group.pattern = compile_pattern(unquote(value), context=key)
        elif attr == "url":
            group.url = self._url(value, profile.variables, context=key)
        elif attr == "refresh":
            group.refresh = parse_refresh(value, default_refresh, context=key)
        elif attr == "cache":
            group.cache_enabled = parse_cache_flag(value, context=key)

    def _bind_transform(
        self, profile: DeviceProfile, group: ValueGroup, key: str, var_name: str, value: str
    ) -> None:
        options = _split_list(value)
        if len(options) != 3:
            LOGGER.error(
                "Transformation property %s invalid. Syntax is: <transformation.name>,<inputvar>,<outputvar>",
                key,
            )
            return
        transform_id, in_relation, out_relation = options
        transformer = profile.transformers.get(transform_id)
        if transformer is None:
            LOGGER.error("%s references unknown transformer %s", key, transform_id)
            return
        variable = group.get(var_name)
        if variable is None:
            LOGGER.error("%s references variable %s which is not part of values.%s", key, var_name, group.name)
            return
        variable.set_transform(transformer, in_relation, out_relation)


def _log_maturity(name: str, maturity: str, author: str) -> None:
    if maturity.lower() not in MATURITIES:
        LOGGER.warning("Unknown maturity %s for profile %s", maturity, name)
    msg = "You are using a %s version of profile %s. Please report errors to the author %s."
    if name == "undefined":
        LOGGER.warning("properties.name is not defined for a profile.")
    elif maturity.lower() in ("stable", "rocksolid"):
        LOGGER.debug(msg, maturity, name, author or "<unknown>")
    elif maturity.lower() == "testing":
        LOGGER.info(msg, maturity, name, author or "<unknown>")
    else:
        LOGGER.warning(msg, maturity, name, author or "<unknown>")
