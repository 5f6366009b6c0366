"""Host-to-profile matching by live probing."""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable

from webcsv.core.model import ProfileSource
from webcsv.core.profile import probe_spec, source_variables
from webcsv.core.refresh import DEFAULT_TIMEOUT_MS
from webcsv.core.template import expand, has_placeholders
from webcsv.transports.base import Fetcher, Pinger

LOGGER = logging.getLogger(__name__)

MAX_PROBE_LINES = 50


class MatchStrength(enum.IntEnum):
    NONE = 0
    WEAK = 1
    STRONG = 2


def match_strength(
    source: ProfileSource,
    host: str,
    fetcher: Fetcher,
    pinger: Pinger,
    *,
    full_check: bool = True,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> MatchStrength | None:
    """Probe `host` for `source`; None when the profile declares no check."""
    spec = probe_spec(source.properties, source.name)
    if spec.url is None:
        LOGGER.warning("Profile %s does not contain a check (test.url).", source.name)
        return None

    url = expand(spec.url, source_variables(source.properties, host), context=f"{source.name} test.url")
    if has_placeholders(url):
        LOGGER.error("Could not resolve test url %s of profile %s", url, source.name)
        return MatchStrength.NONE

    if not pinger.reachable(host, spec.resolve_port(url), timeout_ms / 1000.0):
        return MatchStrength.NONE
    if not full_check:
        return MatchStrength.STRONG

    body = fetcher.fetch(url, timeout_ms)
    if body is None:
        LOGGER.info("Could not fetch %s. Seems not to be a %s.", url, source.name)
        return MatchStrength.NONE

    if spec.pattern is None:
        LOGGER.warning(
            "Profile %s does not contain a regex check (test.expr); a successful fetch of %s is a weak match.",
            source.name, url,
        )
        return MatchStrength.WEAK

    for line in body.splitlines()[:MAX_PROBE_LINES]:
        if spec.pattern.fullmatch(line.strip()):
            return MatchStrength.STRONG
    return MatchStrength.NONE


def probe(
    source: ProfileSource,
    host: str,
    fetcher: Fetcher,
    pinger: Pinger,
    *,
    full_check: bool = True,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> bool | None:
    strength = match_strength(source, host, fetcher, pinger, full_check=full_check, timeout_ms=timeout_ms)
    if strength is None:
        return None
    return strength > MatchStrength.NONE


def discover(
    host: str,
    library: Iterable[ProfileSource],
    fetcher: Fetcher,
    pinger: Pinger,
    *,
    prefer_strong: bool = False,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> ProfileSource | None:
    """Return the first profile of `library` whose full probe matches `host`.

    With `prefer_strong`, a weak match (profile without `test.expr`) is only
    kept provisionally while later profiles get a chance to match strongly.
    """
    provisional: ProfileSource | None = None
    for source in library:
        strength = match_strength(source, host, fetcher, pinger, full_check=True, timeout_ms=timeout_ms)
        if strength is None or strength is MatchStrength.NONE:
            continue
        if strength is MatchStrength.STRONG or not prefer_strong:
            LOGGER.info("Host %s matches profile %s", host, source.name)
            return source
        if provisional is None:
            provisional = source

    if provisional is not None:
        LOGGER.info("Host %s only weakly matches profile %s", host, provisional.name)
        return provisional
    LOGGER.warning("No profile found for %s.", host)
    return None
