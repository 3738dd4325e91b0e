"""Offline transport serving synthetic district files for demos and smoke runs."""

from __future__ import annotations

from mn_precincts.common.errors import SourceFetchError
from mn_precincts.common.models import FetchDiagnostics, FetchResult, PartitionSource
from mn_precincts.common.time_utils import utc_timestamp_iso


def sample_district_payload(district: str) -> dict:
    """One square precinct in raw Secretary of State form, wrapped in a GeometryCollection."""
    offset = int(district) * 0.1 if district.isdigit() else 0.0
    west, south = -93.1 - offset, 45.0
    ring = [[west, south], [west + 0.1, south], [west + 0.1, south + 0.1], [west, south + 0.1], [west, south]]
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {
                    "PrecinctID": f"000{district}",
                    "Precinct": f"Sample Precinct CD{district}",
                    "County": "Sample County",
                    "CongDist": district,
                    "MNSenDist": None,
                    "MNLegDist": None,
                    "CtyComDist": None,
                },
                "geometry": {
                    "type": "GeometryCollection",
                    "geometries": [{"type": "Polygon", "coordinates": [ring]}],
                },
            }
        ],
    }


class SampleTransport:
    def __init__(self, sources: tuple[PartitionSource, ...] | list[PartitionSource]) -> None:
        self.district_by_url = {source.url: source.id for source in sources}

    def fetch_json(self, url: str) -> FetchResult:
        district = self.district_by_url.get(url)
        diagnostics = FetchDiagnostics(
            url=url,
            requested_url=url,
            status=200 if district is not None else 404,
            started_at=utc_timestamp_iso(),
            duration_ms=0,
        )
        if district is None:
            raise SourceFetchError(f"HTTP status 404 for {url}", status=404, diagnostics=diagnostics)
        return FetchResult(payload=sample_district_payload(district), diagnostics=diagnostics)
