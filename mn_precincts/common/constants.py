"""Application constants."""

USER_AGENT = "mn-precincts/0.3 (+civic data; contact: configured-email)"
CRS84_NAME = "urn:ogc:def:crs:OGC:1.3:CRS84"
CRS84 = {
    "type": "name",
    "properties": {
        "name": CRS84_NAME,
    },
}
UNIFIED_COLLECTION_NAME = "full"
DEFAULT_LAYER = "precincts"
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "layer",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "features_in",
    "features_out",
    "error_code",
    "message",
)
