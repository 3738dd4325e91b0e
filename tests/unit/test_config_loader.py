from pathlib import Path

import pytest

from mn_precincts.common.config_loader import load_manifest, resolve_layer
from mn_precincts.common.errors import ConfigError


MINIMAL_MANIFEST = """state:
  code: MN
  name: Minnesota
layers:
  precincts:
    available: true
    sources:
      - id: cd1
        url: https://example.test/cd1.json
    schema:
      propertyMap:
        precinct_id: PrecinctID
      geometryTransform: none
  counties:
    available: false
"""


def test_load_manifest_from_repo_config_dir():
    manifest = load_manifest(Path("config") / "minnesota.yml")
    layer = resolve_layer(manifest, "precincts")
    assert manifest["state"]["code"] == "MN"
    assert len(layer["sources"]) == 8
    assert layer["schema"]["geometryTransform"] == "geometryCollection_to_multiPolygon"


def test_load_manifest_reads_json_manifest(tmp_path: Path):
    path = tmp_path / "manifest.json"
    path.write_text('{"layers": {"precincts": {"url": "https://example.test/mn.json"}}}', encoding="utf-8")

    manifest = load_manifest(path)

    assert resolve_layer(manifest, "precincts")["url"] == "https://example.test/mn.json"


def test_load_manifest_applies_overlay_values(tmp_path: Path):
    base = tmp_path / "minnesota.yml"
    overlay = tmp_path / "overlay.yml"
    base.write_text(MINIMAL_MANIFEST, encoding="utf-8")
    overlay.write_text(
        """layers:
  precincts:
    url: https://example.test/statewide.json
""",
        encoding="utf-8",
    )

    manifest = load_manifest(base, overlay)
    layer = manifest["layers"]["precincts"]

    assert layer["url"] == "https://example.test/statewide.json"
    assert layer["sources"][0]["id"] == "cd1"
    assert layer["schema"]["propertyMap"] == {"precinct_id": "PrecinctID"}


def test_load_manifest_ignores_empty_overlay_file(tmp_path: Path):
    base = tmp_path / "minnesota.yml"
    overlay = tmp_path / "overlay.yml"
    base.write_text(MINIMAL_MANIFEST, encoding="utf-8")
    overlay.write_text("", encoding="utf-8")

    manifest = load_manifest(base, overlay)

    assert "url" not in manifest["layers"]["precincts"]


def test_load_manifest_rejects_non_mapping_overlay(tmp_path: Path):
    base = tmp_path / "minnesota.yml"
    overlay = tmp_path / "overlay.yml"
    base.write_text(MINIMAL_MANIFEST, encoding="utf-8")
    overlay.write_text("- not\n- a\n- mapping\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_manifest(base, overlay)


def test_load_manifest_missing_file_raises(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_manifest(tmp_path / "absent.yml")


def test_resolve_layer_rejects_unavailable_and_missing_layers(tmp_path: Path):
    path = tmp_path / "minnesota.yml"
    path.write_text(MINIMAL_MANIFEST, encoding="utf-8")
    manifest = load_manifest(path)

    with pytest.raises(ConfigError):
        resolve_layer(manifest, "counties")
    with pytest.raises(ConfigError):
        resolve_layer(manifest, "school_districts")
