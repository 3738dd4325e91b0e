"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Mapping


class GeometryTransform(str, Enum):
    NONE = "none"
    GEOMCOLLECTION_TO_MULTIPOLYGON = "geometryCollection_to_multiPolygon"


@dataclass(frozen=True)
class SchemaDescriptor:
    property_map: Mapping[str, str]
    geometry_transform: GeometryTransform = GeometryTransform.NONE


@dataclass(frozen=True)
class PartitionSource:
    id: str
    url: str


@dataclass(frozen=True)
class SourceMetadata:
    state: str
    state_name: str
    source: str
    source_url: str
    license: str
    layers: tuple[str, ...]
    note: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "stateName": self.state_name,
            "source": self.source,
            "sourceUrl": self.source_url,
            "license": self.license,
            "layers": list(self.layers),
            "note": self.note,
        }


@dataclass(frozen=True)
class FetchDiagnostics:
    url: str
    requested_url: str
    status: int | None
    started_at: str
    duration_ms: int
    from_cache: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FetchResult:
    payload: dict[str, Any]
    diagnostics: FetchDiagnostics


@dataclass(frozen=True)
class HarvestResult:
    collection: dict[str, Any]
    diagnostics: list[FetchDiagnostics] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)
    attempted: int = 0
