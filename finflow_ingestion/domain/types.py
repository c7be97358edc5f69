"""
finflow_ingestion.domain.types -- Pure frozen dataclasses for the event pipeline.

ZERO I/O. Imports only from the standard library.

Lifecycle of one delivery:
    RawEvent (PENDING) -> ValidatedRecord -> NormalizedEvent -> persisted
    RawEvent ends in exactly one terminal status: PROCESSED, FAILED, IGNORED.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

# =============================================================================
# Enums
# =============================================================================


class SourceChannel(str, Enum):
    """How a raw payload reached the pipeline."""

    WEBHOOK = "webhook"
    FILE = "file"
    API = "api"


class ProcessingStatus(str, Enum):
    """Per-raw-event lifecycle status."""

    PENDING = "pending"  # Received, pipeline not finished
    PROCESSED = "processed"  # Normalized event handed to persistence
    FAILED = "failed"  # Validation or internal failure
    IGNORED = "ignored"  # Duplicate of an already-accepted event

    @property
    def is_terminal(self) -> bool:
        return self is not ProcessingStatus.PENDING


class Intent(str, Enum):
    """Final business classification of a normalized event."""

    REVENUE = "REVENUE"
    COST = "COST"
    WALLET = "WALLET"
    INVENTORY = "INVENTORY"
    ORDER = "ORDER"


class Severity(str, Enum):
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"


class ErrorCode(str, Enum):
    """Closed taxonomy of pipeline errors attached to raw events."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


DUPLICATE_REASON = "Duplicate Detected"


# =============================================================================
# Errors and warnings
# =============================================================================


@dataclass(frozen=True)
class PipelineError:
    """
    A single pipeline problem.

    Used both for per-field validation issues (``code`` such as
    ``INVALID_AMOUNT``, severity ERROR or WARN) and for the error attached to a
    failed raw event (``code`` in ``ErrorCode``).
    """

    code: str
    message: str
    severity: Severity
    field: str | None = None
    details: dict[str, Any] | None = None

    @property
    def is_blocking(self) -> bool:
        return self.severity is not Severity.WARN

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "field": self.field,
            "details": self.details,
        }


# =============================================================================
# Stage records
# =============================================================================


@dataclass(frozen=True)
class RawEvent:
    """Untyped payload as received plus ingestion metadata. Payload is never modified."""

    id: UUID
    source_id: str
    channel: SourceChannel
    payload: Mapping[str, Any]
    received_at: datetime
    status: ProcessingStatus = ProcessingStatus.PENDING
    status_reason: str | None = None


@dataclass(frozen=True)
class ValidatedRecord:
    """
    Fields of a raw payload proven well-typed.

    Invariants:
        - amount is a finite Decimal
        - currency is an accepted, upper-cased 3-letter code
        - timestamp is timezone-aware (UTC)
        - record_id is the external id when one was supplied, otherwise a
          stable hash of (amount, timestamp, source)
    """

    record_id: str
    amount: Decimal
    currency: str
    timestamp: datetime
    source: str
    record_type: str | None = None
    category: str | None = None
    external_id: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one payload: a record, or blocking errors, plus warnings."""

    record: ValidatedRecord | None
    errors: tuple[PipelineError, ...] = ()
    warnings: tuple[PipelineError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.record is not None and not self.errors

    def __bool__(self) -> bool:
        return self.is_valid


@dataclass(frozen=True)
class InvalidPayload:
    """A payload rejected during batch validation, with every blocking error."""

    payload: Mapping[str, Any]
    errors: tuple[PipelineError, ...]


@dataclass(frozen=True)
class BatchValidation:
    valid: tuple[ValidatedRecord, ...]
    invalid: tuple[InvalidPayload, ...]
    total: int

    @property
    def valid_count(self) -> int:
        return len(self.valid)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid)


@dataclass(frozen=True)
class NormalizedEvent:
    """
    Canonical unified record handed to persistence.

    Invariants:
        - base_amount == round(amount * exchange_rate, 4) under the
          configured rounding mode
        - intent is an ``Intent`` member
    """

    id: UUID
    raw_event_id: UUID
    workspace_id: str
    amount: Decimal
    currency: str
    base_amount: Decimal
    exchange_rate: Decimal
    date: datetime
    intent: Intent
    description: str
    external_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def fingerprint(self) -> str | None:
        return self.metadata.get("fingerprint")


# =============================================================================
# Orchestrator results
# =============================================================================


@dataclass(frozen=True)
class IngestionResult:
    """Terminal outcome of one raw event's pipeline run."""

    event_id: UUID
    status: ProcessingStatus
    reason: str | None = None
    event: NormalizedEvent | None = None
    error: PipelineError | None = None
    warnings: tuple[PipelineError, ...] = ()


@dataclass(frozen=True)
class Delivery:
    """One (source id, channel, payload) triple from an ingress adapter."""

    source_id: str
    channel: SourceChannel
    payload: Mapping[str, Any]


@dataclass(frozen=True)
class QualityReport:
    """
    Data quality of the events a batch accepted.

    overall_score is 0-100: one minus the share of (requires review, low
    confidence, uncategorized) flags out of three per event, rounded.
    """

    total_records: int
    valid_records: int
    requires_review: int
    low_confidence_count: int
    uncategorized_count: int
    duplicates_blocked: int
    overall_score: int


@dataclass(frozen=True)
class BatchReport:
    """Summary of a batch run: per-event results plus aggregate counts."""

    results: tuple[IngestionResult, ...]
    processed: int
    failed: int
    ignored: int
    by_intent: dict[str, int]
    by_category: dict[str, int]
    warning_count: int
    elapsed_ms: float
    quality: QualityReport
    rejected: tuple[str, ...] = ()  # Deliveries the store refused outright

    @property
    def total(self) -> int:
        return len(self.results) + len(self.rejected)
