"""Core data models used across loader, registry, poller, and CLI."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

LOGGER = logging.getLogger(__name__)


class ValueKind(enum.Enum):
    NUMBER = "number"
    TEXT = "text"
    PERCENT = "percent"
    SWITCH = "switch"
    CONTACT = "contact"
    DATETIME = "datetime"


@dataclass(frozen=True)
class TypedValue:
    kind: ValueKind
    value: Any

    def __str__(self) -> str:
        if isinstance(self.value, datetime):
            return self.value.isoformat()
        return str(self.value)


# Declared type tags as written in profiles (case-insensitive).
TYPE_TAGS: dict[str, ValueKind] = {
    "number": ValueKind.NUMBER,
    "decimal": ValueKind.NUMBER,
    "string": ValueKind.TEXT,
    "text": ValueKind.TEXT,
    "dimmer": ValueKind.PERCENT,
    "percent": ValueKind.PERCENT,
    "switch": ValueKind.SWITCH,
    "contact": ValueKind.CONTACT,
    "datetime": ValueKind.DATETIME,
}

_SWITCH_VALUES = {"on": "ON", "1": "ON", "true": "ON", "off": "OFF", "0": "OFF", "false": "OFF"}
_CONTACT_VALUES = {"open": "OPEN", "1": "OPEN", "closed": "CLOSED", "0": "CLOSED"}


def kind_for_tag(tag: str | None) -> ValueKind | None:
    if tag is None:
        return None
    return TYPE_TAGS.get(tag.strip().lower())


def parse_kind(name: str) -> ValueKind:
    """Map a user-facing kind name or declared type tag to a ValueKind."""
    lowered = name.strip().lower()
    for kind in ValueKind:
        if kind.value == lowered:
            return kind
    kind = TYPE_TAGS.get(lowered)
    if kind is None:
        allowed = ", ".join(k.value for k in ValueKind)
        raise ValueError(f"Unknown value kind '{name}'. Allowed: {allowed}")
    return kind


def _to_number(text: str) -> Decimal:
    try:
        number = Decimal(text.strip())
    except InvalidOperation as exc:
        raise ValueError(f"'{text}' is not a number") from exc
    if not number.is_finite():
        raise ValueError(f"'{text}' is not a finite number")
    return number


def _to_percent(text: str) -> Decimal:
    number = _to_number(text)
    if number < 0 or number > 100:
        raise ValueError(f"'{text}' is not a percentage")
    return number


def _to_switch(text: str) -> str:
    try:
        return _SWITCH_VALUES[text.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"'{text}' is not a switch state") from exc


def _to_contact(text: str) -> str:
    try:
        return _CONTACT_VALUES[text.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"'{text}' is not a contact state") from exc


def _to_datetime(text: str) -> datetime:
    return datetime.fromisoformat(text.strip())


_CONVERTERS: dict[ValueKind, Callable[[str], Any]] = {
    ValueKind.NUMBER: _to_number,
    ValueKind.TEXT: str,
    ValueKind.PERCENT: _to_percent,
    ValueKind.SWITCH: _to_switch,
    ValueKind.CONTACT: _to_contact,
    ValueKind.DATETIME: _to_datetime,
}


def make_typed(kind: ValueKind, text: str | None, *, name: str = "") -> TypedValue | None:
    if text is None:
        return None
    try:
        return TypedValue(kind=kind, value=_CONVERTERS[kind](text))
    except (ValueError, ArithmeticError) as exc:
        LOGGER.warning("Was not able to create %s value for %s from %r: %s", kind.value, name, text, exc)
        return None


@dataclass(frozen=True)
class ProfileSource:
    name: str
    origin: str
    properties: Mapping[str, str]


@dataclass(frozen=True)
class ServerConfig:
    server_id: str
    host: str
    profile: str | None = None


@dataclass(frozen=True)
class Binding:
    name: str
    server_id: str
    variable: str
    kind: ValueKind = ValueKind.TEXT
    refresh_ms: int = 0


@dataclass(frozen=True)
class WebcsvConfig:
    servers: dict[str, ServerConfig] = field(default_factory=dict)
    bindings: tuple[Binding, ...] = ()
    timeout_ms: int = 5000
    granularity_ms: int = 10000
