"""Manifest loading and layer resolution."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from mn_precincts.common.errors import ConfigError
from mn_precincts.common.fs import read_yaml
from mn_precincts.common.schema import validate_layer_config


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def load_manifest(path: Path, overlay_path: Path | None = None) -> dict:
    """Load a YAML (or JSON) manifest, deep-merging an optional overlay."""
    if not path.exists():
        raise ConfigError(f"Manifest not found: {path}")
    base = read_yaml(path)
    if not isinstance(base, dict):
        raise ConfigError(f"Manifest must be a mapping: {path}")
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    if not isinstance(overlay, dict):
        raise ConfigError(f"Manifest overlay must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def resolve_layer(manifest: dict, layer_name: str, *, allow_unknown: bool = False) -> dict:
    layers = manifest.get("layers") or {}
    layer = layers.get(layer_name)
    if layer is None:
        raise ConfigError(f"Layer '{layer_name}' not present in manifest")
    if not layer.get("available", True):
        raise ConfigError(f"Layer '{layer_name}' not available in manifest")
    return validate_layer_config(layer, allow_unknown=allow_unknown)
