"""Structural checks for unified precinct collections and run report generation."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any

from mn_precincts.common.constants import CRS84_NAME, UNIFIED_COLLECTION_NAME
from mn_precincts.common.errors import ContractError
from mn_precincts.common.fs import write_json
from mn_precincts.common.models import HarvestResult

REQUIRED_PROPERTIES = ("precinct_id", "precinct_name", "county")
DISTRICT_PROPERTIES = ("us_house", "mn_senate", "mn_house")
POLYGONAL_TYPES = ("Polygon", "MultiPolygon")
MAX_ISSUE_SAMPLES = 50


def _geometry_issue(geometry: Any) -> str | None:
    if not isinstance(geometry, dict):
        return "GEOMETRY_MISSING"
    geometry_type = geometry.get("type")
    if geometry_type not in POLYGONAL_TYPES:
        return f"GEOMETRY_TYPE_{str(geometry_type).upper()}"
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, list) or not coordinates:
        return "GEOMETRY_EMPTY"
    if geometry_type == "MultiPolygon":
        for polygon in coordinates:
            if not isinstance(polygon, list) or not polygon:
                return "GEOMETRY_EMPTY_POLYGON"
    return None


def validate_collection(
    collection: dict[str, Any],
    *,
    expected_state: str | None = "MN",
    required_properties: tuple[str, ...] = REQUIRED_PROPERTIES,
    district_properties: tuple[str, ...] = DISTRICT_PROPERTIES,
) -> dict[str, Any]:
    """Return a report of structural errors and property/geometry warnings.

    Top-level problems are errors. Per-feature problems are warnings, since a
    source may legitimately omit a value for a handful of precincts.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if collection.get("type") != "FeatureCollection":
        errors.append("NOT_A_FEATURE_COLLECTION")
    if collection.get("name") != UNIFIED_COLLECTION_NAME:
        errors.append("UNEXPECTED_COLLECTION_NAME")
    crs_name = ((collection.get("crs") or {}).get("properties") or {}).get("name")
    if crs_name != CRS84_NAME:
        errors.append("CRS_NOT_CRS84")
    metadata = collection.get("metadata") or {}
    if not metadata:
        errors.append("METADATA_MISSING")
    elif expected_state is not None and metadata.get("state") != expected_state:
        errors.append("METADATA_STATE_MISMATCH")

    features = collection.get("features")
    if not isinstance(features, list):
        errors.append("FEATURES_NOT_A_LIST")
        features = []

    issue_counts: Counter[str] = Counter()
    samples: list[dict[str, Any]] = []
    geometry_types: Counter[str] = Counter()

    for idx, feature in enumerate(features):
        issues: list[str] = []
        if not isinstance(feature, dict) or feature.get("type") != "Feature":
            issues.append("NOT_A_FEATURE")
            feature = feature if isinstance(feature, dict) else {}

        properties = feature.get("properties") or {}
        for key in required_properties:
            if properties.get(key) in (None, ""):
                issues.append(f"MISSING_{key.upper()}")
        for key in district_properties:
            if key not in properties:
                issues.append(f"ABSENT_{key.upper()}")

        geometry = feature.get("geometry")
        if isinstance(geometry, dict):
            geometry_types[str(geometry.get("type"))] += 1
        geometry_issue = _geometry_issue(geometry)
        if geometry_issue:
            issues.append(geometry_issue)

        issue_counts.update(issues)
        if issues and len(samples) < MAX_ISSUE_SAMPLES:
            samples.append({"index": idx, "precinct_id": properties.get("precinct_id"), "issues": issues})

    if issue_counts:
        warnings.append("FEATURE_ISSUES_PRESENT")

    precinct_ids = [(f.get("properties") or {}).get("precinct_id") for f in features if isinstance(f, dict)]
    duplicates = sum(count - 1 for pid, count in Counter(precinct_ids).items() if pid is not None and count > 1)
    if duplicates:
        # Overlapping partitions are kept as-is; only reported.
        warnings.append("DUPLICATE_PRECINCT_IDS_PRESENT")

    return {
        "feature_count": len(features),
        "geometry_types": dict(sorted(geometry_types.items())),
        "duplicate_precinct_ids": duplicates,
        "issue_counts": dict(sorted(issue_counts.items())),
        "issue_samples": samples,
        "warnings": warnings,
        "errors": errors,
    }


def enforce_contract(report: dict[str, Any]) -> None:
    if report["errors"]:
        raise ContractError(";".join(report["errors"]))


def write_run_report(
    path: Path,
    *,
    run_id: str,
    layer: str,
    mode: str,
    harvest: HarvestResult,
    validation: dict[str, Any],
) -> Path:
    succeeded = harvest.attempted - len(harvest.failed_sources)
    status = "success"
    if validation["errors"]:
        status = "error"
    elif harvest.failed_sources or validation["warnings"]:
        status = "partial"

    payload = {
        "run_id": run_id,
        "layer": layer,
        "mode": mode,
        "status": status,
        "partitions": {
            "attempted": harvest.attempted,
            "succeeded": succeeded,
            "failed": list(harvest.failed_sources),
        },
        "fetches": [diag.to_dict() for diag in harvest.diagnostics],
        "validation": validation,
    }
    write_json(path, payload)
    return path
