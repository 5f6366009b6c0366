"""Profile loading and validation for YAML-based webcsv device profiles."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from webcsv.core.errors import ProfileLoadError, ProfileValidationError
from webcsv.core.model import ProfileSource

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Profile values such as `options.cache: on` are plain strings, not booleans.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ProfileValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedProfiles:
    profiles: dict[str, ProfileSource]
    warnings: tuple[str, ...]

    def ordered(self) -> list[ProfileSource]:
        return [self.profiles[name] for name in sorted(self.profiles)]


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("webcsv.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _profile_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "webcsv/profiles", xdg_data / "webcsv/profiles"


def read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProfileLoadError(f"Could not read file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ProfileValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ProfileValidationError(f"File {path} must contain a mapping at root")
    return loaded


def build_source(doc: dict[str, Any], source: Path | Traversable | str) -> ProfileSource:
    validator = load_schema_validator("profile.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ProfileValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    properties = {str(key): str(value).strip() for key, value in doc.items()}
    name = properties.get("properties.name", properties.get("name"))
    assert name is not None
    return ProfileSource(name=name, origin=str(source), properties=properties)


def _iter_packaged_profile_paths() -> list[Traversable]:
    profile_root = resources.files("webcsv.profiles")
    return [item for item in profile_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_profile_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _profile_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_profiles() -> LoadedProfiles:
    profiles: dict[str, ProfileSource] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_profile_paths(), key=lambda p: p.name):
        source = build_source(read_yaml(path), path)
        profiles[source.name] = source

    for path in _iter_user_profile_paths():
        try:
            source = build_source(read_yaml(path), path)
        except (ProfileLoadError, ProfileValidationError) as exc:
            warning = f"Skipping user profile {path}: {exc}"
            LOGGER.error(warning)
            warnings.append(warning)
            continue
        if source.name in profiles:
            warning = f"User profile '{source.name}' overrides packaged profile"
            LOGGER.warning(warning)
            warnings.append(warning)
        profiles[source.name] = source

    return LoadedProfiles(profiles=profiles, warnings=tuple(warnings))
