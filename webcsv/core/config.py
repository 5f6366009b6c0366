"""Runtime configuration: servers to poll and the items bound to them."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from webcsv.core.errors import ConfigError, ProfileLoadError, ProfileValidationError
from webcsv.core.model import Binding, ServerConfig, ValueKind, WebcsvConfig, parse_kind
from webcsv.core.profile_loader import load_schema_validator, read_yaml

DEFAULT_TIMEOUT_MS = 5000
DEFAULT_GRANULARITY_MS = 10000


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "webcsv/config.yaml"


def load_config(path: Path | None = None) -> WebcsvConfig:
    config_path = path or default_config_path()
    if not config_path.exists():
        raise ConfigError(f"Configuration file {config_path} does not exist")
    try:
        doc = read_yaml(config_path)
    except (ProfileLoadError, ProfileValidationError) as exc:
        raise ConfigError(str(exc)) from exc
    return build_config(doc, source=str(config_path))


def build_config(doc: dict[str, Any], *, source: str = "<config>") -> WebcsvConfig:
    validator = load_schema_validator("config.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    servers = {
        server_id: ServerConfig(
            server_id=server_id,
            host=spec["host"],
            profile=spec.get("profile"),
        )
        for server_id, spec in doc.get("servers", {}).items()
    }

    bindings: list[Binding] = []
    for position, item in enumerate(doc.get("items", [])):
        if item["server"] not in servers:
            raise ConfigError(f"Item #{position} in {source} references unknown server '{item['server']}'")
        try:
            kind = parse_kind(item["kind"]) if "kind" in item else ValueKind.TEXT
        except ValueError as exc:
            raise ConfigError(f"Item #{position} in {source}: {exc}") from exc
        bindings.append(
            Binding(
                name=item.get("name", f"{item['server']}.{item['variable']}"),
                server_id=item["server"],
                variable=item["variable"],
                kind=kind,
                refresh_ms=int(item.get("refresh", 0)),
            )
        )

    return WebcsvConfig(
        servers=servers,
        bindings=tuple(bindings),
        timeout_ms=int(doc.get("timeout", DEFAULT_TIMEOUT_MS)),
        granularity_ms=int(doc.get("granularity", DEFAULT_GRANULARITY_MS)),
    )
