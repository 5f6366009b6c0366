"""`%{name}` placeholder substitution for profile templates."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from types import MappingProxyType

LOGGER = logging.getLogger(__name__)

VARIABLE_RE = re.compile(r"%\{([0-9a-zA-Z_-]+)\}")
_MAX_PASSES = 16


def expand(template: str, variables: Mapping[str, str], *, context: str | None = None) -> str:
    """Substitute placeholders until the string stops changing.

    Unknown placeholders are logged and kept literally; a template that never
    settles (cyclic definitions) is returned as it stood after the last pass.
    """
    result = template
    unresolved: set[str] = set()
    for _ in range(_MAX_PASSES):
        unresolved = set()

        def _substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            if name in variables:
                return variables[name]
            unresolved.add(name)
            return match.group(0)

        expanded = VARIABLE_RE.sub(_substitute, result)
        if expanded == result:
            break
        result = expanded
    else:
        LOGGER.warning(
            "Substitution of %s did not settle after %d passes (cyclic variables?), using %s",
            context or template,
            _MAX_PASSES,
            result,
        )

    for name in sorted(unresolved):
        LOGGER.warning(
            "Substitution of variable %s in %s (%s) is not possible. Variable is unknown.",
            name,
            context or "template",
            template,
        )
    return result


def resolve_variables(raw: Mapping[str, str], host: str | None) -> Mapping[str, str]:
    """Resolve `vars.*` definitions against each other and the implicit `host`."""
    merged = dict(raw)
    if host is not None:
        merged["host"] = host
    elif "host" not in merged:
        LOGGER.warning("No host supplied; templates using %{host} stay unresolved")

    resolved = {
        name: expand(value, merged, context=f"vars.{name}") for name, value in merged.items()
    }
    return MappingProxyType(resolved)


def has_placeholders(text: str) -> bool:
    return VARIABLE_RE.search(text) is not None
