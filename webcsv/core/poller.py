"""Scheduling shim reading bound items on every tick."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from webcsv.core.model import Binding, TypedValue
from webcsv.core.refresh import Clock, now_ms
from webcsv.core.registry import ProfileRegistry

LOGGER = logging.getLogger(__name__)

Publisher = Callable[[Binding, TypedValue], None]


class Poller:
    def __init__(
        self,
        registry: ProfileRegistry,
        bindings: Sequence[Binding],
        publish: Publisher,
        *,
        clock: Clock = now_ms,
    ) -> None:
        self.registry = registry
        self.bindings = tuple(bindings)
        self._publish = publish
        self._clock = clock
        self._last_read: dict[int, int] = {}

    def due(self, now: int) -> list[Binding]:
        return [self.bindings[index] for index in self._due_indexes(now)]

    def _due_indexes(self, now: int) -> list[int]:
        # Keyed by position, item names are not unique.
        due: list[int] = []
        for index, binding in enumerate(self.bindings):
            last = self._last_read.get(index)
            if last is None or now >= last + binding.refresh_ms:
                due.append(index)
        return due

    def tick(self) -> int:
        """Read every due binding once; returns the number of published values."""
        now = self._clock()
        per_server: dict[str, list[Binding]] = {}
        for index in self._due_indexes(now):
            binding = self.bindings[index]
            per_server.setdefault(binding.server_id, []).append(binding)
            self._last_read[index] = now
        if not per_server:
            return 0

        with ThreadPoolExecutor(max_workers=len(per_server), thread_name_prefix="webcsv-poll") as pool:
            results = list(pool.map(self._read_server, per_server.values()))

        published = 0
        for readings in results:
            for binding, value in readings:
                self._publish(binding, value)
                published += 1
        return published

    def _read_server(self, bindings: list[Binding]) -> list[tuple[Binding, TypedValue]]:
        readings: list[tuple[Binding, TypedValue]] = []
        for binding in bindings:
            value = self.registry.current_typed_value(binding.server_id, binding.variable, binding.kind)
            if value is None:
                LOGGER.debug("No update for %s this tick", binding.name)
                continue
            readings.append((binding, value))
        return readings

    def run(self, granularity_ms: int, stop: threading.Event) -> None:
        while not stop.is_set():
            self.tick()
            stop.wait(granularity_ms / 1000.0)
