"""Lookup-table transformation of coded values.

A transformer fetches a table such as::

    0,Error
    1,Off
    2,Startup
    3,Running

and matches every line against a pattern like ``^\\W*(\\d+),(.*?)\\W*$`` whose
capture groups are named by relations (``statid,statdesc``). Resolving
``"3"`` from ``statid`` to ``statdesc`` yields ``"Running"``. Which relation is
the key and which the result is chosen per call.
"""

from __future__ import annotations

import logging
import re

from webcsv.core.refresh import (
    DEFAULT_REFRESH_MS,
    DEFAULT_TIMEOUT_MS,
    Clock,
    is_stale,
    now_ms,
)
from webcsv.transports.base import Fetcher

LOGGER = logging.getLogger(__name__)

MAX_LINES = 1000


class Transformer:
    def __init__(
        self,
        name: str,
        fetcher: Fetcher,
        *,
        clock: Clock = now_ms,
        refresh: int = DEFAULT_REFRESH_MS,
        cache_enabled: bool = True,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self.name = name
        self.url: str | None = None
        self.pattern: re.Pattern[str] | None = None
        self.relations: tuple[str, ...] = ()
        self.types: tuple[str, ...] = ()
        self.refresh = refresh
        self.cache_enabled = cache_enabled
        self.timeout_ms = timeout_ms
        self.last_fetch = 0
        self.last_matched_line: str | None = None
        self.cached_lines: list[str] | None = None
        self._fetcher = fetcher
        self._clock = clock

    def __repr__(self) -> str:
        return (
            f"Transformer(name={self.name!r}, url={self.url!r}, relations={self.relations!r}, "
            f"refresh={self.refresh}, cache_enabled={self.cache_enabled}, last_fetch={self.last_fetch})"
        )

    def relation_type(self, relation: str) -> str | None:
        try:
            position = self.relations.index(relation)
        except ValueError:
            return None
        if position >= len(self.types):
            return None
        return self.types[position]

    def is_stale(self) -> bool:
        return not self.cache_enabled or is_stale(self.last_fetch, self.refresh, self._clock())

    def resolve(self, input_value: str, input_relation: str, output_relation: str) -> str | None:
        positions = self._positions(input_relation, output_relation)
        if positions is None:
            return None

        if self.is_stale():
            return self._resolve_fetched(input_value, positions)

        if self.last_matched_line is not None:
            pair = self._match_line(self.last_matched_line, positions)
            if pair is not None and pair[0] == input_value:
                LOGGER.debug(
                    "1st level cache hit for %s == %s -> %s = %s in transformer %s",
                    input_relation, input_value, output_relation, pair[1], self.name,
                )
                return pair[1]
            LOGGER.debug(
                "1st level cache miss for %s != %s in transformer %s, searching 2nd level cache",
                input_relation, input_value, self.name,
            )

        return self._resolve_cached(input_value, positions)

    def _positions(self, input_relation: str, output_relation: str) -> tuple[int, int] | None:
        if self.pattern is None:
            LOGGER.error("Transformer %s has no expression configured", self.name)
            return None
        try:
            in_pos = self.relations.index(input_relation)
            out_pos = self.relations.index(output_relation)
        except ValueError:
            LOGGER.error(
                "Can not find relations %s and %s in expression group variables %s of transformer %s",
                input_relation, output_relation, list(self.relations), self.name,
            )
            return None
        if max(in_pos, out_pos) + 1 > self.pattern.groups:
            LOGGER.error(
                "Expression of transformer %s has %d groups, relation %s/%s needs %d",
                self.name, self.pattern.groups, input_relation, output_relation, max(in_pos, out_pos) + 1,
            )
            return None
        return in_pos, out_pos

    def _match_line(self, line: str, positions: tuple[int, int]) -> tuple[str, str] | None:
        assert self.pattern is not None
        match = self.pattern.fullmatch(line)
        if match is None:
            return None
        key, value = match.group(positions[0] + 1), match.group(positions[1] + 1)
        if key is None or value is None:
            return None
        return key, value

    def _resolve_cached(self, input_value: str, positions: tuple[int, int]) -> str | None:
        for line in self.cached_lines or ():
            pair = self._match_line(line, positions)
            if pair is not None and pair[0] == input_value:
                LOGGER.debug("2nd level cache hit for %s in transformer %s", input_value, self.name)
                self.last_matched_line = line
                return pair[1]
        return None

    def _resolve_fetched(self, input_value: str, positions: tuple[int, int]) -> str | None:
        if self.url is None:
            LOGGER.error("Transformer %s has no url configured", self.name)
            return None
        body = self._fetcher.fetch(self.url, self.timeout_ms)
        if body is None:
            LOGGER.error("Could not fetch %s for transformer %s", self.url, self.name)
            return None

        result: str | None = None
        cached: list[str] = []
        for line in body.splitlines()[:MAX_LINES]:
            pair = self._match_line(line, positions)
            if pair is None:
                continue
            if self.cache_enabled:
                cached.append(line)
            if result is None and pair[0] == input_value:
                result = pair[1]
                self.last_matched_line = line
                if not self.cache_enabled:
                    break

        self.cached_lines = cached if self.cache_enabled else None
        self.last_fetch = self._clock()
        if result is None:
            LOGGER.debug("No entry for %s in transformer %s", input_value, self.name)
        return result
