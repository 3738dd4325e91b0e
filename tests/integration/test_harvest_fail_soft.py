from __future__ import annotations

import threading
import time

import pytest

from mn_precincts.common.errors import AllSourcesFailedError, ConfigError, SourceFetchError, TransformError
from mn_precincts.common.models import (
    FetchDiagnostics,
    FetchResult,
    GeometryTransform,
    PartitionSource,
    SchemaDescriptor,
)
from mn_precincts.harvest import adapter
from mn_precincts.harvest.adapter import AdapterConfig, PartitionedPlan, SinglePlan

SCHEMA = SchemaDescriptor(
    property_map={"precinct_id": "PrecinctID", "county": "County"},
    geometry_transform=GeometryTransform.GEOMCOLLECTION_TO_MULTIPOLYGON,
)
SQUARE = [[[-93.1, 45.0], [-93.0, 45.0], [-93.0, 45.1], [-93.1, 45.1], [-93.1, 45.0]]]


def _district(*precinct_ids: str) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"PrecinctID": pid, "County": "Dakota"},
                "geometry": {"type": "Polygon", "coordinates": SQUARE},
            }
            for pid in precinct_ids
        ],
    }


class FakeTransport:
    def __init__(self, responses: dict[str, object], delays: dict[str, float] | None = None):
        self.responses = responses
        self.delays = delays or {}
        self.calls: list[str] = []
        self.lock = threading.Lock()

    def fetch_json(self, url: str) -> FetchResult:
        with self.lock:
            self.calls.append(url)
        time.sleep(self.delays.get(url, 0.0))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        diagnostics = FetchDiagnostics(url=url, requested_url=url, status=200, started_at="t0", duration_ms=1)
        return FetchResult(payload=response, diagnostics=diagnostics)


def _sources(*ids: str) -> tuple[PartitionSource, ...]:
    return tuple(PartitionSource(id=i, url=f"https://example.test/cd{i}.json") for i in ids)


def _partitioned(*ids: str, schema=SCHEMA) -> AdapterConfig:
    return AdapterConfig(plan=PartitionedPlan(sources=_sources(*ids)), schema=schema)


def _ids(collection: dict) -> list[str]:
    return [f["properties"]["precinct_id"] for f in collection["features"]]


@pytest.mark.integration
def test_partitioned_harvest_skips_failed_partition():
    transport = FakeTransport(
        {
            "https://example.test/cd1.json": _district("0101", "0102"),
            "https://example.test/cd2.json": SourceFetchError("HTTP status 500", status=500),
            "https://example.test/cd3.json": _district("0301"),
        }
    )

    result = adapter.harvest_layer(_partitioned("1", "2", "3"), transport)

    assert _ids(result.collection) == ["0101", "0102", "0301"]
    assert result.failed_sources == ["2"]
    assert result.attempted == 3
    assert len(transport.calls) == 3


@pytest.mark.integration
def test_partitioned_harvest_swallows_unexpected_transport_errors():
    transport = FakeTransport(
        {
            "https://example.test/cd1.json": ConnectionResetError("peer reset"),
            "https://example.test/cd2.json": _district("0201"),
        }
    )

    collection = adapter.fetch_precincts(_partitioned("1", "2"), transport)

    assert _ids(collection) == ["0201"]


@pytest.mark.integration
def test_partitioned_merge_order_follows_source_list_not_completion():
    transport = FakeTransport(
        {
            "https://example.test/cd1.json": _district("0101"),
            "https://example.test/cd2.json": _district("0201"),
            "https://example.test/cd3.json": _district("0301"),
        },
        delays={"https://example.test/cd1.json": 0.2, "https://example.test/cd2.json": 0.1},
    )

    collection = adapter.fetch_precincts(_partitioned("1", "2", "3"), transport)

    assert _ids(collection) == ["0101", "0201", "0301"]


@pytest.mark.integration
def test_partitioned_fetches_run_concurrently():
    started = threading.Barrier(3, timeout=2)

    class BarrierTransport(FakeTransport):
        def fetch_json(self, url: str) -> FetchResult:
            # Every fetch must be in flight before any can finish.
            started.wait()
            return super().fetch_json(url)

    transport = BarrierTransport({s.url: _district(s.id) for s in _sources("1", "2", "3")})

    collection = adapter.fetch_precincts(_partitioned("1", "2", "3"), transport)

    assert _ids(collection) == ["1", "2", "3"]


@pytest.mark.integration
def test_partitioned_harvest_fails_when_all_partitions_fail():
    transport = FakeTransport(
        {
            "https://example.test/cd1.json": SourceFetchError("HTTP status 404", status=404),
            "https://example.test/cd2.json": SourceFetchError("Invalid JSON payload"),
        }
    )

    with pytest.raises(AllSourcesFailedError):
        adapter.fetch_precincts(_partitioned("1", "2"), transport)


@pytest.mark.integration
def test_partition_with_json_body_but_no_features_is_dropped():
    transport = FakeTransport(
        {
            "https://example.test/cd1.json": {"error": "maintenance"},
            "https://example.test/cd2.json": _district("0201"),
        }
    )

    result = adapter.harvest_layer(_partitioned("1", "2"), transport)

    assert _ids(result.collection) == ["0201"]
    assert result.failed_sources == ["1"]
    assert result.diagnostics[0].url == "https://example.test/cd1.json"
    assert result.diagnostics[0].error is not None
    assert result.diagnostics[1].error is None


@pytest.mark.integration
def test_malformed_feature_in_successful_fetch_fails_pipeline():
    transport = FakeTransport(
        {
            "https://example.test/cd1.json": {"type": "FeatureCollection", "features": ["not-a-feature"]},
            "https://example.test/cd2.json": _district("0201"),
        }
    )

    with pytest.raises(TransformError):
        adapter.fetch_precincts(_partitioned("1", "2"), transport)


@pytest.mark.integration
def test_empty_partition_list_is_a_configuration_error():
    config = AdapterConfig(plan=PartitionedPlan(sources=()), schema=SCHEMA)

    with pytest.raises(ConfigError):
        adapter.fetch_precincts(config, FakeTransport({}))


@pytest.mark.integration
def test_single_mode_failure_propagates_without_partition_fallback():
    transport = FakeTransport({"https://example.test/mn.json": SourceFetchError("HTTP status 503", status=503)})
    config = AdapterConfig(plan=SinglePlan(url="https://example.test/mn.json"), schema=SCHEMA)

    with pytest.raises(SourceFetchError):
        adapter.fetch_precincts(config, transport)

    assert transport.calls == ["https://example.test/mn.json"]


@pytest.mark.integration
def test_single_mode_transforms_statewide_payload():
    transport = FakeTransport({"https://example.test/mn.json": _district("0001", "0002")})
    config = AdapterConfig(plan=SinglePlan(url="https://example.test/mn.json"), schema=SCHEMA)

    result = adapter.harvest_layer(config, transport)

    assert _ids(result.collection) == ["0001", "0002"]
    assert result.collection["features"][0]["geometry"]["type"] == "MultiPolygon"
    assert result.attempted == 1
    assert result.failed_sources == []


@pytest.mark.integration
def test_without_schema_raw_features_pass_through():
    transport = FakeTransport({"https://example.test/cd1.json": _district("0101")})

    collection = adapter.fetch_precincts(_partitioned("1", schema=None), transport)

    feature = collection["features"][0]
    assert feature["properties"] == {"PrecinctID": "0101", "County": "Dakota"}
    assert feature["geometry"]["type"] == "Polygon"
    assert collection["metadata"]["state"] == "MN"


@pytest.mark.integration
def test_single_mode_unexpected_transport_error_is_logged_and_reraised(caplog):
    transport = FakeTransport({"https://example.test/mn.json": ConnectionResetError("peer reset")})
    config = AdapterConfig(plan=SinglePlan(url="https://example.test/mn.json"), schema=SCHEMA)

    with caplog.at_level("WARNING", logger=adapter.LOGGER.name):
        with pytest.raises(ConnectionResetError):
            adapter.fetch_precincts(config, transport)

    failures = [record for record in caplog.records if getattr(record, "event", None) == "FETCH_FAIL"]
    assert len(failures) == 1
    assert failures[0].error_code == "UNEXPECTED_ERROR"
