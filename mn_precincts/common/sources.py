"""Minnesota Secretary of State precinct sources and provenance."""

from __future__ import annotations

from mn_precincts.common.models import PartitionSource, SourceMetadata

FALLBACK_SOURCES: tuple[PartitionSource, ...] = (
    PartitionSource(id="1", url="https://www.sos.mn.gov/media/2785/mn-cd1-precincts.json"),
    PartitionSource(id="2", url="https://www.sos.mn.gov/media/2786/mn-cd2-precincts.json"),
    PartitionSource(id="3", url="https://www.sos.mn.gov/media/2787/mn-cd3-precincts.json"),
    PartitionSource(id="4", url="https://www.sos.mn.gov/media/2788/mn-cd4-precincts.json"),
    PartitionSource(id="5", url="https://www.sos.mn.gov/media/2789/mn-cd5-precincts.json"),
    PartitionSource(id="6", url="https://www.sos.mn.gov/media/2790/mn-cd6-precincts.json"),
    PartitionSource(id="7", url="https://www.sos.mn.gov/media/2791/mn-cd7-precincts.json"),
    PartitionSource(id="8", url="https://www.sos.mn.gov/media/2792/mn-cd8-precincts.json"),
)

MINNESOTA_METADATA = SourceMetadata(
    state="MN",
    state_name="Minnesota",
    source="Minnesota Secretary of State",
    source_url="https://www.sos.mn.gov/election-administration-campaigns/data-maps/voting-precincts/",
    license="No explicit license - Terms & Conditions apply",
    layers=("precincts",),
    note="Data must be fetched directly from official source, not redistributed",
)


def partition_id(raw_id: object) -> str:
    """Manifest ids such as ``cd3`` map to the bare district number ``3``."""
    value = str(raw_id)
    if value.startswith("cd"):
        return value[2:]
    return value
