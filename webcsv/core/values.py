"""Value groups and their variables.

A `ValueGroup` owns one fetchable line format and the refresh/caching policy
for it. Each `VariableValue` keeps the raw, the factor-scaled and the
transformed representation of one field of that line.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from decimal import Decimal, InvalidOperation

from webcsv.core.model import TypedValue, ValueKind, kind_for_tag, make_typed
from webcsv.core.refresh import (
    DEFAULT_REFRESH_MS,
    DEFAULT_TIMEOUT_MS,
    Clock,
    is_stale,
    now_ms,
)
from webcsv.core.transformer import Transformer
from webcsv.transports.base import Fetcher

LOGGER = logging.getLogger(__name__)

READ_MAX_LINES = 100
DEFAULT_TYPE = "String"
# Some devices (e.g. Powador inverters) end every line with a semicolon.
_LINE_TERMINATOR = ";"


class VariableValue:
    def __init__(self, name: str, group: ValueGroup) -> None:
        self.name = name
        self.group = group
        self.raw: str | None = None
        self.scaled: str | None = None
        self.transformed: str | None = None
        self.factor: Decimal | None = None
        self.type = DEFAULT_TYPE
        self.transformer: Transformer | None = None
        self.input_relation: str | None = None
        self.output_relation: str | None = None

    def __repr__(self) -> str:
        return f"VariableValue(name={self.name!r}, raw={self.raw!r}, transformed={self.transformed!r})"

    def set_factor(self, factor: str | None) -> None:
        if factor is None or factor.strip() == "" or factor.strip().lower() == "null":
            self.factor = None
            return
        try:
            parsed = Decimal(factor.strip())
        except InvalidOperation:
            parsed = None
        if parsed is None or not parsed.is_finite():
            LOGGER.error("%s can not be parsed to a factor for %s.", factor, self.name)
            return
        self.factor = parsed

    def set_transform(self, transformer: Transformer, input_relation: str, output_relation: str) -> None:
        if self.transformer is not None and self.transformer is not transformer:
            LOGGER.info(
                "Transformer %s for value %s was overwritten by %s",
                self.transformer.name, self.name, transformer.name,
            )
        self.transformer = transformer
        self.input_relation = input_relation
        self.output_relation = output_relation

    def update(self, raw: str | None) -> None:
        if raw is None:
            return
        self.raw = raw
        self.scaled = self._scale(raw)
        if self.transformer is None:
            self.transformed = self.scaled
        else:
            assert self.input_relation is not None and self.output_relation is not None
            self.transformed = self.transformer.resolve(self.scaled, self.input_relation, self.output_relation)

    def _scale(self, raw: str) -> str:
        if self.factor is None:
            return raw
        try:
            return str(Decimal(raw.strip()) * self.factor)
        except ArithmeticError:
            LOGGER.error("Value %r of %s is not numeric, factor %s not applied", raw, self.name, self.factor)
            return raw

    def current_value(self) -> str | None:
        """Return the most processed representation, refreshing the group first."""
        self.group.refresh_if_stale()
        return self.transformed

    def output_type(self) -> str | None:
        if self.transformer is not None and self.output_relation is not None:
            return self.transformer.relation_type(self.output_relation)
        return None

    def typed_value(self, kind: ValueKind) -> TypedValue | None:
        """Return the representation whose declared type best matches `kind`.

        The transformed value wins when the transformer declares a matching
        output type; then the scaled value under the variable's own type;
        otherwise the scaled value as text.
        """
        self.group.refresh_if_stale()

        if self.transformer is not None and kind_for_tag(self.output_type()) is kind and self.transformed is not None:
            return make_typed(kind, self.transformed, name=self.name)
        if kind_for_tag(self.type) is kind:
            return make_typed(kind, self.scaled if self.scaled is not None else self.raw, name=self.name)
        return make_typed(ValueKind.TEXT, self.scaled, name=self.name)


class ValueGroup:
    def __init__(
        self,
        name: str,
        variables: Sequence[str],
        fetcher: Fetcher,
        *,
        clock: Clock = now_ms,
        refresh: int = DEFAULT_REFRESH_MS,
        cache_enabled: bool = True,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.name = name
        self.url: str | None = None
        self.split: str | None = None
        self.pattern: re.Pattern[str] | None = None
        self.refresh = refresh
        self.cache_enabled = cache_enabled
        self.timeout_ms = timeout_ms
        self.last_fetch = 0
        self.variables = tuple(variables)
        self._values = {var: VariableValue(var, self) for var in self.variables}
        self._fetcher = fetcher
        self._clock = clock

    def __repr__(self) -> str:
        return (
            f"ValueGroup(name={self.name!r}, url={self.url!r}, split={self.split!r}, "
            f"expr={self.pattern.pattern if self.pattern else None!r}, values={len(self._values)}, "
            f"cache_enabled={self.cache_enabled}, refresh={self.refresh}, last_fetch={self.last_fetch})"
        )

    def values(self) -> list[VariableValue]:
        return [self._values[var] for var in self.variables]

    def value(self, name: str) -> VariableValue | None:
        self.refresh_if_stale()
        return self._values.get(name)

    def get(self, name: str) -> VariableValue | None:
        """Return the variable without triggering a refresh."""
        return self._values.get(name)

    def set_factors(self, factors: Sequence[str]) -> None:
        if len(factors) != len(self.variables):
            LOGGER.warning(
                "Count of vars (%d) and factors (%d) differ for values.%s.",
                len(self.variables), len(factors), self.name,
            )
            return
        for var, factor in zip(self.variables, factors):
            self._values[var].set_factor(factor)

    def set_types(self, types: Sequence[str]) -> None:
        if len(types) != len(self.variables):
            LOGGER.warning(
                "Count of vars (%d) and types (%d) differ for values.%s.",
                len(self.variables), len(types), self.name,
            )
            return
        for var, type_tag in zip(self.variables, types):
            if kind_for_tag(type_tag) is None:
                LOGGER.warning("Unknown type %s for %s in values.%s, using %s", type_tag, var, self.name, DEFAULT_TYPE)
                type_tag = DEFAULT_TYPE
            self._values[var].type = type_tag.strip()

    def is_stale(self) -> bool:
        return not self.cache_enabled or is_stale(self.last_fetch, self.refresh, self._clock())

    def refresh_if_stale(self) -> bool:
        """Fetch and distribute a new line when the cached one is stale.

        Returns True only when new data was applied to the variables.
        """
        if not self.is_stale():
            LOGGER.debug("Update of values.%s not needed. Skipping.", self.name)
            return False
        if (self.split is None) == (self.pattern is None):
            LOGGER.error("Either split or an expression must be defined for values.%s. Aborting data retrieval.", self.name)
            return False
        if self.url is None:
            LOGGER.error("No url defined for values.%s.", self.name)
            return False

        body = self._fetcher.fetch(self.url, self.timeout_ms)
        if body is None:
            LOGGER.warning("Could not fetch %s for values.%s, keeping previous values", self.url, self.name)
            return False

        fields = self._extract(body)
        if fields is None:
            LOGGER.error(
                "Result from %s was not matching the %d variables expected for values.%s.",
                self.url, len(self.variables), self.name,
            )
            return False

        for var, field_value in zip(self.variables, fields):
            self._values[var].update(field_value)
        self.last_fetch = self._clock()
        return True

    def _extract(self, body: str) -> list[str] | None:
        for line in body.splitlines()[:READ_MAX_LINES]:
            fields = self._split_line(line) if self.split is not None else self._match_line(line)
            if fields is not None and len(fields) >= len(self.variables):
                return fields
        return None

    def _split_line(self, line: str) -> list[str] | None:
        assert self.split is not None
        stripped = line.strip()
        if stripped.endswith(_LINE_TERMINATOR):
            stripped = stripped[: -len(_LINE_TERMINATOR)]
        if not stripped:
            return None
        fields = re.split(self.split, stripped)
        while fields and fields[-1] == "":
            fields.pop()
        return fields

    def _match_line(self, line: str) -> list[str] | None:
        assert self.pattern is not None
        match = self.pattern.fullmatch(line.strip())
        if match is None:
            return None
        return list(match.groups())
