"""Refresh/caching policy shared by value groups and transformers."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

LOGGER = logging.getLogger(__name__)

REFRESH_ONCE = -1
REFRESH_ALWAYS = 0

DEFAULT_REFRESH_MS = 30000
DEFAULT_TIMEOUT_MS = 3000

_CACHE_ENABLED = ("true", "enabled", "on", "cached")
_CACHE_DISABLED = ("false", "disabled", "off", "uncached")

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


def is_stale(last_fetch: int, refresh: int, now: int) -> bool:
    """Return True when data fetched at `last_fetch` must be fetched again.

    `last_fetch == 0` means never fetched. `refresh == -1` keeps the first
    successful fetch forever, `refresh == 0` refetches on every read.
    """
    if last_fetch == 0:
        return True
    if refresh == REFRESH_ONCE:
        return False
    if refresh == REFRESH_ALWAYS:
        return True
    return now >= last_fetch + refresh


def parse_refresh(value: str | None, default: int, *, context: str) -> int:
    if value is None:
        return default
    try:
        refresh = int(str(value).strip())
    except ValueError:
        LOGGER.error("Could not parse %s=%s. Is it really a numeric value?", context, value)
        return default
    if refresh < REFRESH_ONCE:
        LOGGER.error("%s=%s is out of range (must be -1, 0 or positive)", context, value)
        return default
    return refresh


def parse_cache_flag(value: str | None, default: bool = True, *, context: str = "cache") -> bool:
    if value is None:
        return default
    lowered = str(value).strip().lower()
    if lowered in _CACHE_DISABLED:
        return False
    if lowered in _CACHE_ENABLED:
        return True
    LOGGER.warning(
        "%s=%s is not a valid cache setting. Must be one of %s or %s",
        context,
        value,
        ", ".join(_CACHE_ENABLED),
        ", ".join(_CACHE_DISABLED),
    )
    return True
