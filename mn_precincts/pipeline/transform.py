"""Schema-driven transform from source GeoJSON into the unified precinct schema.

Pure functions only: no I/O and no state. A schema pairs a property map
(``unified key -> source key``) with a geometry transform selector.
"""

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

from mn_precincts.common.constants import CRS84, UNIFIED_COLLECTION_NAME
from mn_precincts.common.errors import TransformError
from mn_precincts.common.models import GeometryTransform, SchemaDescriptor


def _unified_collection(features: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "name": UNIFIED_COLLECTION_NAME,
        "crs": copy.deepcopy(CRS84),
        "features": features,
    }


def map_properties(source_props: Mapping[str, Any] | None, property_map: Mapping[str, str]) -> dict[str, Any]:
    """Return one entry per unified key; missing source keys map to ``None``."""
    source_props = source_props or {}
    return {target: source_props.get(source) for target, source in property_map.items()}


def normalize_geometry(geometry: dict[str, Any] | None, mode: GeometryTransform) -> dict[str, Any] | None:
    if mode is GeometryTransform.NONE or not geometry:
        return geometry

    geometry_type = geometry.get("type")
    if geometry_type == "GeometryCollection":
        members = geometry.get("geometries")
        if not isinstance(members, list):
            return geometry
        polygons = [member for member in members if isinstance(member, Mapping) and member.get("type") == "Polygon"]
        if polygons:
            return {
                "type": "MultiPolygon",
                "coordinates": [polygon.get("coordinates") for polygon in polygons],
            }
        # No polygon members: leave the collection as it is.
        return geometry

    if geometry_type == "Polygon":
        return {
            "type": "MultiPolygon",
            "coordinates": [geometry.get("coordinates")],
        }

    return geometry


def transform_feature(raw_feature: Mapping[str, Any], schema: SchemaDescriptor) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": map_properties(raw_feature.get("properties"), schema.property_map),
        "geometry": normalize_geometry(raw_feature.get("geometry"), schema.geometry_transform),
    }


def transform_feature_collection(raw_fc: Any, schema: SchemaDescriptor) -> dict[str, Any]:
    if not isinstance(raw_fc, Mapping) or not isinstance(raw_fc.get("features"), list):
        raise TransformError("transform_feature_collection: invalid FeatureCollection")

    features = []
    for idx, feature in enumerate(raw_fc["features"]):
        if not isinstance(feature, Mapping):
            raise TransformError(f"transform_feature_collection: feature {idx} is not an object")
        features.append(transform_feature(feature, schema))
    return _unified_collection(features)


def merge_feature_collections(collections: Iterable[Mapping[str, Any] | None]) -> dict[str, Any]:
    """Concatenate features in input order, skipping ``None`` entries."""
    features: list[dict[str, Any]] = []
    for collection in collections:
        if collection is None:
            continue
        features.extend(collection.get("features") or [])
    return _unified_collection(features)
