import pytest

from mn_precincts.common.errors import ConfigError
from mn_precincts.common.models import GeometryTransform
from mn_precincts.common.schema import parse_geometry_transform, parse_schema_descriptor, validate_layer_config


BASE_LAYER = {
    "available": True,
    "sources": [{"id": "cd1", "url": "https://example.test/cd1.json"}],
    "schema": {
        "propertyMap": {"precinct_id": "PrecinctID"},
        "geometryTransform": "geometryCollection_to_multiPolygon",
    },
}


def test_validate_layer_config_accepts_valid_shape():
    validated = validate_layer_config(dict(BASE_LAYER))
    assert validated["sources"][0]["id"] == "cd1"


def test_validate_layer_config_rejects_unknown_key_by_default():
    bad = dict(BASE_LAYER)
    bad["unexpected"] = True
    with pytest.raises(ConfigError):
        validate_layer_config(bad)


def test_validate_layer_config_allows_unknown_when_enabled():
    okay = dict(BASE_LAYER)
    okay["extra"] = 1
    validate_layer_config(okay, allow_unknown=True)


def test_validate_layer_config_rejects_source_without_url():
    bad = dict(BASE_LAYER)
    bad["sources"] = [{"id": "cd1"}]
    with pytest.raises(ConfigError):
        validate_layer_config(bad)


def test_validate_layer_config_rejects_duplicate_source_ids():
    bad = dict(BASE_LAYER)
    bad["sources"] = [
        {"id": "cd1", "url": "https://example.test/a.json"},
        {"id": "cd1", "url": "https://example.test/b.json"},
    ]
    with pytest.raises(ConfigError):
        validate_layer_config(bad)


def test_parse_geometry_transform_defaults_and_rejects_unknown():
    assert parse_geometry_transform(None) is GeometryTransform.NONE
    assert parse_geometry_transform("none") is GeometryTransform.NONE
    with pytest.raises(ConfigError):
        parse_geometry_transform("GeometryCollection->MultiPolygon")


def test_parse_schema_descriptor_rejects_non_string_mapping():
    with pytest.raises(ConfigError):
        parse_schema_descriptor({"propertyMap": {"precinct_id": 3}})


def test_parse_schema_descriptor_property_map_is_read_only():
    schema = parse_schema_descriptor({"propertyMap": {"precinct_id": "PrecinctID"}})
    with pytest.raises(TypeError):
        schema.property_map["county"] = "County"


def test_validate_layer_config_rejects_ids_that_resolve_to_same_partition():
    bad = dict(BASE_LAYER)
    bad["sources"] = [
        {"id": "cd1", "url": "https://example.test/a.json"},
        {"id": 1, "url": "https://example.test/b.json"},
    ]
    with pytest.raises(ConfigError, match="Duplicate source ids: 1"):
        validate_layer_config(bad)
