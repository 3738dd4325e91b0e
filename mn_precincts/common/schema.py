"""Minimal strict schemas for manifest layer validation."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from mn_precincts.common.errors import ConfigError
from mn_precincts.common.models import GeometryTransform, SchemaDescriptor
from mn_precincts.common.sources import partition_id

LAYER_KNOWN_KEYS = {"available", "url", "sources", "schema", "description", "format", "notes"}
SCHEMA_KNOWN_KEYS = {"propertyMap", "geometryTransform"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def parse_geometry_transform(value: str | None) -> GeometryTransform:
    if value is None:
        return GeometryTransform.NONE
    try:
        return GeometryTransform(value)
    except ValueError as exc:
        known = ", ".join(t.value for t in GeometryTransform)
        raise ConfigError(f"Unknown geometryTransform {value!r}; expected one of: {known}") from exc


def parse_schema_descriptor(cfg: dict | None, *, allow_unknown: bool = False) -> SchemaDescriptor | None:
    if cfg is None:
        return None
    if not isinstance(cfg, Mapping):
        raise ConfigError("schema must be a mapping")
    _assert_no_unknown_keys(dict(cfg), SCHEMA_KNOWN_KEYS, "schema", allow_unknown)

    property_map = cfg.get("propertyMap") or {}
    if not isinstance(property_map, Mapping):
        raise ConfigError("schema.propertyMap must be a mapping")
    for target, source in property_map.items():
        if not isinstance(target, str) or not isinstance(source, str):
            raise ConfigError(f"schema.propertyMap entries must be strings: {target!r} -> {source!r}")

    return SchemaDescriptor(
        property_map=MappingProxyType(dict(property_map)),
        geometry_transform=parse_geometry_transform(cfg.get("geometryTransform")),
    )


def validate_layer_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    if not isinstance(cfg, Mapping):
        raise ConfigError("layer config must be a mapping")
    _assert_no_unknown_keys(dict(cfg), LAYER_KNOWN_KEYS, "layer", allow_unknown)

    url = cfg.get("url")
    if url is not None and (not isinstance(url, str) or not url):
        raise ConfigError("layer.url must be a non-empty string")

    sources = cfg.get("sources")
    if sources is not None:
        if not isinstance(sources, list):
            raise ConfigError("layer.sources must be a list")
        ids: list[str] = []
        for idx, src in enumerate(sources):
            if not isinstance(src, Mapping):
                raise ConfigError(f"sources[{idx}] must be a mapping")
            _assert_required_keys(dict(src), {"id", "url"}, f"sources[{idx}]")
            ids.append(partition_id(src["id"]))
        dupes = {value for value in ids if ids.count(value) > 1}
        if dupes:
            raise ConfigError(f"Duplicate source ids: {', '.join(sorted(dupes))}")

    parse_schema_descriptor(cfg.get("schema"), allow_unknown=allow_unknown)
    return cfg
