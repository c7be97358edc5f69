"""Pipeline ORM models (raw events, errors, normalized events, seen-set)."""

from finflow_ingestion.models.staging import (
    NormalizedEventModel,
    PipelineErrorModel,
    RawEventModel,
    SeenFingerprintModel,
)

__all__ = [
    "NormalizedEventModel",
    "PipelineErrorModel",
    "RawEventModel",
    "SeenFingerprintModel",
]
