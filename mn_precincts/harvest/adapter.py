"""Precinct fetch planning and fan-out/merge orchestration with fail-soft semantics."""

from __future__ import annotations

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Protocol, Union

from mn_precincts.common.constants import CRS84, DEFAULT_LAYER, UNIFIED_COLLECTION_NAME
from mn_precincts.common.errors import AllSourcesFailedError, ConfigError, SourceFetchError
from mn_precincts.common.logging import log_event, log_warning
from mn_precincts.common.models import (
    FetchDiagnostics,
    FetchResult,
    HarvestResult,
    PartitionSource,
    SchemaDescriptor,
)
from mn_precincts.common.schema import parse_schema_descriptor
from mn_precincts.common.sources import FALLBACK_SOURCES, MINNESOTA_METADATA, partition_id
from mn_precincts.pipeline.transform import merge_feature_collections, transform_feature_collection

LOGGER = logging.getLogger(__name__)


class Transport(Protocol):
    def fetch_json(self, url: str) -> FetchResult: ...


@dataclass(frozen=True)
class SinglePlan:
    url: str
    mode: ClassVar[str] = "single"


@dataclass(frozen=True)
class PartitionedPlan:
    sources: tuple[PartitionSource, ...]
    fallback: bool = False
    mode: ClassVar[str] = "partitioned"


FetchPlan = Union[SinglePlan, PartitionedPlan]


@dataclass(frozen=True)
class AdapterConfig:
    plan: FetchPlan
    schema: SchemaDescriptor | None = None
    layer: str = DEFAULT_LAYER


def resolve_fetch_plan(layer_config: dict | None) -> FetchPlan:
    """Statewide URL wins, then a non-empty source list, then the built-in districts."""
    layer_config = layer_config or {}
    url = layer_config.get("url")
    if url:
        return SinglePlan(url=url)

    sources = layer_config.get("sources")
    if isinstance(sources, list) and sources:
        return PartitionedPlan(
            sources=tuple(PartitionSource(id=partition_id(src["id"]), url=src["url"]) for src in sources),
        )

    return PartitionedPlan(sources=FALLBACK_SOURCES, fallback=True)


def build_adapter_config(layer_config: dict | None, *, layer: str = DEFAULT_LAYER) -> AdapterConfig:
    schema_cfg = (layer_config or {}).get("schema")
    return AdapterConfig(
        plan=resolve_fetch_plan(layer_config),
        schema=parse_schema_descriptor(schema_cfg),
        layer=layer,
    )


def get_metadata() -> dict[str, Any]:
    return MINNESOTA_METADATA.to_dict()


def fetch_source(transport: Transport, url: str) -> FetchResult:
    result = transport.fetch_json(url)
    payload = result.payload
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        message = f"Payload from {url} is not a FeatureCollection"
        raise SourceFetchError(
            message,
            status=result.diagnostics.status,
            diagnostics=replace(result.diagnostics, error=message),
        )
    return result


def _to_unified(payload: dict[str, Any], schema: SchemaDescriptor | None) -> dict[str, Any]:
    if schema is None:
        return payload
    return transform_feature_collection(payload, schema)


def _wrap(features: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "name": UNIFIED_COLLECTION_NAME,
        "metadata": get_metadata(),
        "crs": copy.deepcopy(CRS84),
        "features": features,
    }


def _fetch_partition(
    transport: Transport,
    source: PartitionSource,
    logger: logging.Logger,
    layer: str,
) -> tuple[FetchResult | None, FetchDiagnostics | None]:
    try:
        result = fetch_source(transport, source.url)
    except Exception as exc:
        log_warning(
            logger,
            f"skipping partition {source.id}: {exc}",
            stage="harvest",
            layer=layer,
            source=source.id,
            event="FETCH_FAIL",
            status="error",
            error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
        )
        return None, getattr(exc, "diagnostics", None)

    log_event(
        logger,
        f"fetched partition {source.id}",
        stage="harvest",
        layer=layer,
        source=source.id,
        event="FETCH_OK",
        status="ok",
        duration_ms=result.diagnostics.duration_ms,
        features_in=len(result.payload["features"]),
    )
    return result, result.diagnostics


def _harvest_single(
    config: AdapterConfig,
    plan: SinglePlan,
    transport: Transport,
    logger: logging.Logger,
) -> HarvestResult:
    try:
        result = fetch_source(transport, plan.url)
    except Exception as exc:
        log_warning(
            logger,
            f"statewide fetch failed: {exc}",
            stage="harvest",
            layer=config.layer,
            source="statewide",
            event="FETCH_FAIL",
            status="error",
            error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
        )
        raise

    unified = _to_unified(result.payload, config.schema)
    collection = _wrap(unified["features"])
    log_event(
        logger,
        "statewide layer fetched",
        stage="harvest",
        layer=config.layer,
        source="statewide",
        event="MERGE_DONE",
        status="ok",
        duration_ms=result.diagnostics.duration_ms,
        features_in=len(result.payload["features"]),
        features_out=len(collection["features"]),
    )
    return HarvestResult(collection=collection, diagnostics=[result.diagnostics], attempted=1)


def _harvest_partitioned(
    config: AdapterConfig,
    plan: PartitionedPlan,
    transport: Transport,
    logger: logging.Logger,
    max_workers: int | None,
) -> HarvestResult:
    if not plan.sources:
        raise ConfigError(f"No precinct sources configured for layer '{config.layer}'")

    with ThreadPoolExecutor(max_workers=max_workers or len(plan.sources)) as executor:
        futures = [
            executor.submit(_fetch_partition, transport, source, logger, config.layer) for source in plan.sources
        ]
        # Results are read in source order, not completion order.
        outcomes = [future.result() for future in futures]

    diagnostics = [diag for _result, diag in outcomes if diag is not None]
    failed = [source.id for source, (result, _diag) in zip(plan.sources, outcomes) if result is None]
    successes = [result for result, _diag in outcomes if result is not None]
    if not successes:
        raise AllSourcesFailedError(
            f"Failed to fetch any precinct data from {len(plan.sources)} partitions of layer '{config.layer}'"
        )

    merged = merge_feature_collections(_to_unified(result.payload, config.schema) for result in successes)
    collection = _wrap(merged["features"])
    log_event(
        logger,
        f"merged {len(successes)} of {len(plan.sources)} partitions",
        stage="merge",
        layer=config.layer,
        event="MERGE_DONE",
        status="partial" if failed else "ok",
        features_in=sum(len(result.payload["features"]) for result in successes),
        features_out=len(collection["features"]),
    )
    return HarvestResult(
        collection=collection,
        diagnostics=diagnostics,
        failed_sources=failed,
        attempted=len(plan.sources),
    )


def harvest_layer(
    config: AdapterConfig,
    transport: Transport,
    *,
    logger: logging.Logger | None = None,
    max_workers: int | None = None,
) -> HarvestResult:
    """Fetch, transform and merge a layer, keeping per-fetch diagnostics."""
    logger = logger or LOGGER
    plan = config.plan
    if isinstance(plan, SinglePlan):
        return _harvest_single(config, plan, transport, logger)
    return _harvest_partitioned(config, plan, transport, logger, max_workers)


def fetch_precincts(
    config: AdapterConfig,
    transport: Transport,
    *,
    logger: logging.Logger | None = None,
    max_workers: int | None = None,
) -> dict[str, Any]:
    return harvest_layer(config, transport, logger=logger, max_workers=max_workers).collection
