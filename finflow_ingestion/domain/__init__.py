"""
finflow_ingestion.domain -- Pure types, validation and fingerprinting.

ZERO I/O. Imports only from finflow_kernel/domain/ and the standard library.
"""

from finflow_ingestion.domain.fingerprint import compute_fingerprint, synthesize_record_id
from finflow_ingestion.domain.types import (
    DUPLICATE_REASON,
    BatchReport,
    BatchValidation,
    Delivery,
    ErrorCode,
    IngestionResult,
    Intent,
    InvalidPayload,
    NormalizedEvent,
    PipelineError,
    ProcessingStatus,
    RawEvent,
    Severity,
    SourceChannel,
    ValidatedRecord,
    ValidationOutcome,
)
from finflow_ingestion.domain.validators import (
    RecordValidator,
    parse_timestamp,
    validate_batch,
    validate_record,
)

__all__ = [
    "DUPLICATE_REASON",
    "BatchReport",
    "BatchValidation",
    "Delivery",
    "ErrorCode",
    "IngestionResult",
    "Intent",
    "InvalidPayload",
    "NormalizedEvent",
    "PipelineError",
    "ProcessingStatus",
    "RawEvent",
    "RecordValidator",
    "Severity",
    "SourceChannel",
    "ValidatedRecord",
    "ValidationOutcome",
    "compute_fingerprint",
    "parse_timestamp",
    "synthesize_record_id",
    "validate_batch",
    "validate_record",
]
