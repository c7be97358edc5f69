"""
Pipeline ORM models: raw events, their errors, normalized events, and the
durable seen-set.

Contract:
    RawEventModel keeps the payload exactly as received plus its lifecycle
    status. PipelineErrorModel rows hang off a raw event. NormalizedEventModel
    stores the converted, classified record with its fingerprint pulled out
    of metadata into an indexed column for duplicate lookups.
    SeenFingerprintModel backs ``SqlSeenStore`` (unique fingerprint).

Architecture: finflow_ingestion/models. Imports from finflow_kernel.db.base only.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from finflow_kernel.db.base import TimestampedBase, UUIDString

if TYPE_CHECKING:
    from finflow_ingestion.dedup.seen_store import SeenEntry
    from finflow_ingestion.domain.types import NormalizedEvent, PipelineError, RawEvent


def _to_json_safe(obj: Any) -> Any:
    """Convert values to JSON-serializable form (Decimal -> str, etc.)."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {str(k): _to_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_to_json_safe(v) for v in obj]
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    return obj


def _utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored instant is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RawEventModel(TimestampedBase):
    """One delivery as received. Payload is written once and never updated."""

    __tablename__ = "raw_events"

    __table_args__ = (Index("ix_raw_events_status", "status"),)

    source_id: Mapped[str] = mapped_column(String(200), nullable=False)
    channel: Mapped[str] = mapped_column(String(20), nullable=False)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    status_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> RawEvent:
        from finflow_ingestion.domain.types import ProcessingStatus, RawEvent, SourceChannel

        return RawEvent(
            id=self.id,
            source_id=self.source_id,
            channel=SourceChannel(self.channel),
            payload=self.payload,
            received_at=_utc(self.received_at),
            status=ProcessingStatus(self.status),
            status_reason=self.status_reason,
        )

    @classmethod
    def from_dto(cls, dto: RawEvent) -> RawEventModel:
        return cls(
            id=dto.id,
            source_id=dto.source_id,
            channel=dto.channel.value,
            payload=_to_json_safe(dict(dto.payload) if isinstance(dto.payload, Mapping) else dto.payload),
            received_at=dto.received_at,
            status=dto.status.value,
            status_reason=dto.status_reason,
        )


class PipelineErrorModel(TimestampedBase):
    """Error attached to a raw event before it is marked FAILED."""

    __tablename__ = "pipeline_errors"

    __table_args__ = (Index("ix_pipeline_errors_raw_event", "raw_event_id"),)

    raw_event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("raw_events.id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    field: Mapped[str | None] = mapped_column(String(200), nullable=True)
    details: Mapped[Any | None] = mapped_column(JSON, nullable=True)

    def to_dto(self) -> PipelineError:
        from finflow_ingestion.domain.types import PipelineError, Severity

        return PipelineError(
            code=self.code,
            message=self.message,
            severity=Severity(self.severity),
            field=self.field,
            details=self.details,
        )

    @classmethod
    def from_dto(cls, dto: PipelineError, raw_event_id: UUID) -> PipelineErrorModel:
        return cls(
            raw_event_id=raw_event_id,
            code=dto.code,
            message=dto.message,
            severity=dto.severity.value,
            field=dto.field,
            details=_to_json_safe(dto.details) if dto.details else None,
        )


class NormalizedEventModel(TimestampedBase):
    """Canonical event handed to downstream accounting and dashboards."""

    __tablename__ = "normalized_events"

    __table_args__ = (
        Index("ix_normalized_events_fingerprint", "fingerprint"),
        Index("ix_normalized_events_workspace_date", "workspace_id", "date"),
    )

    raw_event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("raw_events.id"),
        nullable=False,
    )
    workspace_id: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    intent: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    fingerprint: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Any] = mapped_column("metadata", JSON, nullable=False, default=dict)

    def to_dto(self) -> NormalizedEvent:
        from finflow_ingestion.domain.types import Intent, NormalizedEvent

        return NormalizedEvent(
            id=self.id,
            raw_event_id=self.raw_event_id,
            workspace_id=self.workspace_id,
            amount=self.amount,
            currency=self.currency,
            base_amount=self.base_amount,
            exchange_rate=self.exchange_rate,
            date=_utc(self.date),
            intent=Intent(self.intent),
            description=self.description,
            external_id=self.external_id,
            metadata=dict(self.event_metadata or {}),
        )

    @classmethod
    def from_dto(cls, dto: NormalizedEvent) -> NormalizedEventModel:
        return cls(
            id=dto.id,
            raw_event_id=dto.raw_event_id,
            workspace_id=dto.workspace_id,
            amount=dto.amount,
            currency=dto.currency,
            base_amount=dto.base_amount,
            exchange_rate=dto.exchange_rate,
            date=dto.date,
            intent=dto.intent.value,
            description=dto.description,
            external_id=dto.external_id,
            fingerprint=dto.fingerprint,
            event_metadata=_to_json_safe(dto.metadata),
        )


class SeenFingerprintModel(TimestampedBase):
    """Durable seen-set entry: one row per fingerprint."""

    __tablename__ = "seen_fingerprints"

    fingerprint: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    occurrences: Mapped[int] = mapped_column(nullable=False, default=1)

    def to_dto(self) -> SeenEntry:
        from finflow_ingestion.dedup.seen_store import SeenEntry

        return SeenEntry(
            fingerprint=self.fingerprint,
            first_seen_at=_utc(self.first_seen_at),
            occurrences=self.occurrences,
        )
