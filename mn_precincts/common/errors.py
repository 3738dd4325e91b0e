"""Domain errors and failure typing."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class SourceFetchError(PipelineError):
    """Raised when one remote source is unusable.

    Bad status, HTML challenge pages, unparseable bodies and transport errors
    all surface as this class so callers can treat them identically.
    """

    error_code = "SOURCE_FETCH_ERROR"

    def __init__(self, message: str, *, status: int | None = None, diagnostics=None) -> None:
        super().__init__(message)
        self.status = status
        self.diagnostics = diagnostics


class AllSourcesFailedError(PipelineError):
    """Raised when every partition of a layer failed to fetch."""

    error_code = "ALL_SOURCES_FAILED"


class TransformError(PipelineError):
    """Raised when transform input is not a FeatureCollection."""

    error_code = "TRANSFORM_ERROR"


class ContractError(PipelineError):
    """Raised when strict output contracts are broken."""

    error_code = "CONTRACT_ERROR"
