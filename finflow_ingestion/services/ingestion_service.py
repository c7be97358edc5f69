"""
IngestionService -- per-event orchestration of the pipeline.

Responsibility:
    Receives (source id, channel, payload) deliveries, records the raw event,
    and runs validate -> deduplicate -> normalize -> classify -> persist,
    leaving every raw event in exactly one terminal status.

State machine per raw event:
    PENDING -> PROCESSED  all stages succeeded, normalized event persisted
    PENDING -> FAILED     VALIDATION_ERROR (ERROR) or INTERNAL_ERROR (FATAL);
                          the PipelineError is stored before the transition
    PENDING -> IGNORED    fingerprint already accepted; reason
                          "Duplicate Detected", no PipelineError

Invariants enforced:
    - At-most-once acceptance per fingerprint: each run claims its
      fingerprint in the seen-set with one atomic check-and-set before it
      normalizes, so any number of services sharing a seen-set accept a
      fingerprint once. A run that ends FAILED releases its claim, so a
      corrected retry is accepted.
    - The normalized event and the PROCESSED status are written by one
      ``save_processed`` call: a FAILED raw event never has a persisted
      normalized event.
    - Duplicate check consults the injected seen-set first, then the store's
      ``check_external_duplicate`` backstop.
    - Failure isolation is per event: batch helpers never let one event's
      failure abort another's run.

Failure modes:
    - IngestionFailedError -- the store refused the raw event itself. This is
      the only exception ``ingest`` raises; there is no stored event to mark.
    - Validation problems and stage exceptions never propagate; they end as
      FAILED with an attached PipelineError.
"""

from __future__ import annotations

import contextvars
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable, Sequence
from uuid import UUID, uuid4

from finflow_config import get_active_config
from finflow_config.schema import PipelineConfig
from finflow_ingestion.adapters import adapter_for_path, unwrap_payloads
from finflow_ingestion.classification.classifier import Classifier
from finflow_ingestion.classification.confidence import annotate_confidence
from finflow_ingestion.dedup.deduplicator import Deduplicator
from finflow_ingestion.domain.types import (
    DUPLICATE_REASON,
    BatchReport,
    Delivery,
    ErrorCode,
    IngestionResult,
    PipelineError,
    ProcessingStatus,
    RawEvent,
    Severity,
    SourceChannel,
    ValidatedRecord,
    ValidationOutcome,
)
from finflow_ingestion.domain.validators import RecordValidator
from finflow_ingestion.normalization.exchange_rates import RateSource
from finflow_ingestion.normalization.normalizer import Normalizer
from finflow_ingestion.services.event_store import EventStore
from finflow_ingestion.services.quality import build_quality_report
from finflow_kernel.domain.clock import Clock, SystemClock
from finflow_kernel.exceptions import IngestionFailedError
from finflow_kernel.logging_config import LogContext, get_logger

logger = get_logger("ingestion.service")

VALIDATION_FAILED_MESSAGE = "Payload failed schema validation"


def _coerce_channel(channel: SourceChannel | str) -> SourceChannel:
    if isinstance(channel, SourceChannel):
        return channel
    return SourceChannel(str(channel).strip().lower())


class IngestionService:
    """
    Runs the ingestion pipeline for individual deliveries and batches.

    Contract:
        ``ingest`` / ``ingest_event`` return only after the raw event reached
        a terminal status. Collaborators are injected; defaults are built
        from the pipeline config.
    """

    def __init__(
        self,
        store: EventStore,
        config: PipelineConfig | None = None,
        *,
        deduplicator: Deduplicator | None = None,
        rate_source: RateSource | None = None,
        validator: RecordValidator | None = None,
        normalizer: Normalizer | None = None,
        classifier: Classifier | None = None,
        clock: Clock | None = None,
    ):
        """
        Args:
            store: Persistence collaborator.
            config: Pipeline configuration. Defaults to ``get_active_config()``.
            deduplicator: Seen-set wrapper. Defaults to an in-memory seen-set.
                Services sharing one seen-set store accept each fingerprint once.
            rate_source: Exchange-rate snapshots. Defaults to the config's rates.
            validator: Defaults to one built from the config.
            normalizer: Defaults to one built from the config and rate_source.
            classifier: Defaults to the standard rule list.
            clock: Arrival and first-seen timestamps. Defaults to SystemClock.
        """
        self._store = store
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._dedup = deduplicator or Deduplicator(clock=self._clock)
        self._validator = validator or RecordValidator.from_config(self._config)
        self._normalizer = normalizer or Normalizer(self._config, rate_source)
        self._classifier = classifier or Classifier()

    @property
    def deduplicator(self) -> Deduplicator:
        return self._dedup

    # -------------------------------------------------------------------------
    # Single event
    # -------------------------------------------------------------------------

    def ingest(self, source_id: str, channel: SourceChannel | str, payload: Any) -> UUID:
        """Run the pipeline for one delivery and return the raw event id."""
        return self.ingest_event(source_id, channel, payload).event_id

    def ingest_event(self, source_id: str, channel: SourceChannel | str, payload: Any) -> IngestionResult:
        """Run the pipeline for one delivery and return its terminal result."""
        channel = _coerce_channel(channel)
        raw = RawEvent(
            id=uuid4(),
            source_id=source_id,
            channel=channel,
            payload=payload,
            received_at=self._clock.now(),
        )

        with LogContext.bind(event_id=str(raw.id), source_id=source_id, channel=channel.value):
            try:
                self._store.insert_raw_event(raw)
            except Exception as exc:
                logger.error("raw_event_rejected", exc_info=True)
                raise IngestionFailedError(str(raw.id), str(exc)) from exc

            logger.info("event_received")
            return self._run(raw)

    def get_status(self, event_id: UUID) -> ProcessingStatus:
        return self._store.get_raw_event(event_id).status

    def _run(self, raw: RawEvent) -> IngestionResult:
        outcome = self._validator.validate(raw.payload, default_source=raw.source_id)
        for warning in outcome.warnings:
            logger.warning(
                "validation_warning",
                extra={"code": warning.code, "field": warning.field, "detail": warning.message},
            )

        if not outcome.is_valid:
            return self._fail_validation(raw, outcome)

        assert outcome.record is not None
        record = outcome.record
        fingerprint = self._dedup.fingerprint(record)
        with LogContext.bind(fingerprint=fingerprint):
            return self._run_claimed(raw, record, fingerprint, outcome.warnings)

    def _run_claimed(
        self,
        raw: RawEvent,
        record: ValidatedRecord,
        fingerprint: str,
        warnings: tuple[PipelineError, ...],
    ) -> IngestionResult:
        stage = "deduplicate"
        claimed = False
        try:
            claimed = self._dedup.claim(record)
            # A claim that finds the fingerprint already persisted stays: it is seen
            if not claimed or self._store.check_external_duplicate(fingerprint):
                self._store.update_status(raw.id, ProcessingStatus.IGNORED, DUPLICATE_REASON)
                logger.info("duplicate_ignored", extra={"reason": DUPLICATE_REASON})
                return IngestionResult(
                    event_id=raw.id,
                    status=ProcessingStatus.IGNORED,
                    reason=DUPLICATE_REASON,
                    warnings=warnings,
                )

            stage = "normalize"
            event = self._normalizer.normalize(raw.id, record, warnings)
            stage = "classify"
            event = self._classifier.classify(event, raw.channel, raw.payload)
            stage = "score"
            event = annotate_confidence(event, raw.payload)
            stage = "persist"
            self._store.save_processed(event)
        except Exception as exc:
            logger.error("pipeline_internal_error", exc_info=True, extra={"stage": stage})
            if claimed:
                self._release(record)
            error = PipelineError(
                code=ErrorCode.INTERNAL_ERROR.value,
                message=f"Unexpected failure during {stage}: {exc}",
                severity=Severity.FATAL,
                details={
                    "stage": stage,
                    "exception_type": type(exc).__name__,
                    "exception_code": getattr(exc, "code", None),
                },
            )
            return self._fail(raw, error, warnings)

        logger.info(
            "event_processed",
            extra={
                "normalized_event_id": str(event.id),
                "intent": event.intent.value,
                "category": event.metadata.get("category"),
                "currency": event.currency,
                "base_amount": str(event.base_amount),
                "confidence": event.metadata["confidence"],
                "warning_count": len(warnings),
            },
        )
        return IngestionResult(
            event_id=raw.id,
            status=ProcessingStatus.PROCESSED,
            event=event,
            warnings=warnings,
        )

    def _release(self, record: ValidatedRecord) -> None:
        try:
            self._dedup.release(record)
        except Exception:
            # The run still ends FAILED; the stale claim only blocks retries of this fingerprint
            logger.error("fingerprint_release_failed", exc_info=True)

    def _fail_validation(self, raw: RawEvent, outcome: ValidationOutcome) -> IngestionResult:
        error = PipelineError(
            code=ErrorCode.VALIDATION_ERROR.value,
            message=VALIDATION_FAILED_MESSAGE,
            severity=Severity.ERROR,
            details={"errors": [e.to_dict() for e in outcome.errors]},
        )
        logger.warning(
            "validation_failed",
            extra={
                "error_count": len(outcome.errors),
                "error_codes": [e.code for e in outcome.errors],
            },
        )
        return self._fail(raw, error, outcome.warnings)

    def _fail(
        self,
        raw: RawEvent,
        error: PipelineError,
        warnings: tuple[PipelineError, ...] = (),
    ) -> IngestionResult:
        self._store.insert_error(error, raw.id)
        self._store.update_status(raw.id, ProcessingStatus.FAILED, error.message)
        return IngestionResult(
            event_id=raw.id,
            status=ProcessingStatus.FAILED,
            reason=error.message,
            error=error,
            warnings=warnings,
        )

    # -------------------------------------------------------------------------
    # Many events
    # -------------------------------------------------------------------------

    def ingest_batch(self, deliveries: Sequence[Delivery], max_workers: int = 8) -> BatchReport:
        """
        Run many deliveries on a thread pool.

        Each delivery gets its own pipeline run; results keep input order.
        A delivery the store refuses outright is reported under ``rejected``.
        """
        started = time.perf_counter()
        results: list[IngestionResult] = []
        rejected: list[str] = []

        with LogContext.bind(correlation_id=str(uuid4())):
            logger.info("batch_started", extra={"delivery_count": len(deliveries)})
            with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
                futures = [
                    pool.submit(
                        contextvars.copy_context().run,
                        self.ingest_event,
                        delivery.source_id,
                        delivery.channel,
                        delivery.payload,
                    )
                    for delivery in deliveries
                ]
                for delivery, future in zip(deliveries, futures):
                    try:
                        results.append(future.result())
                    except Exception as exc:
                        logger.error(
                            "delivery_rejected",
                            exc_info=True,
                            extra={"delivery_source_id": delivery.source_id},
                        )
                        rejected.append(str(exc))

            report = self._report(results, rejected, started)
            logger.info(
                "batch_completed",
                extra={
                    "total": report.total,
                    "processed": report.processed,
                    "failed": report.failed,
                    "ignored": report.ignored,
                    "quality_score": report.quality.overall_score,
                    "rejected": len(report.rejected),
                    "elapsed_ms": report.elapsed_ms,
                },
            )
        return report

    def ingest_document(
        self,
        document: Any,
        source_id: str,
        channel: SourceChannel | str = SourceChannel.WEBHOOK,
        max_workers: int = 8,
    ) -> BatchReport:
        """Unwrap a delivered document (list, envelope or single payload) and ingest each payload."""
        channel = _coerce_channel(channel)
        deliveries = [Delivery(source_id, channel, payload) for payload in unwrap_payloads(document)]
        return self.ingest_batch(deliveries, max_workers=max_workers)

    def ingest_file(
        self,
        source_path: Path,
        source_id: str,
        options: dict[str, Any] | None = None,
        max_workers: int = 1,
    ) -> BatchReport:
        """
        Ingest every record of an uploaded JSON, JSON Lines or CSV file.

        Defaults to one worker so rows run in file order and the later of two
        duplicate rows is the one IGNORED.
        """
        source_path = Path(source_path)
        adapter = adapter_for_path(source_path)
        logger.info("file_ingestion_started", extra={"path": str(source_path), "source_id": source_id})
        deliveries = [
            Delivery(source_id, SourceChannel.FILE, payload)
            for payload in adapter.read(source_path, options or {})
        ]
        return self.ingest_batch(deliveries, max_workers=max_workers)

    def _report(
        self,
        results: Iterable[IngestionResult],
        rejected: list[str],
        started: float,
    ) -> BatchReport:
        results = tuple(results)
        statuses = Counter(result.status for result in results)
        by_intent: Counter[str] = Counter()
        by_category: Counter[str] = Counter()
        events = [result.event for result in results if result.event is not None]
        for event in events:
            by_intent[event.intent.value] += 1
            by_category[event.metadata.get("category", "Uncategorized")] += 1
        return BatchReport(
            results=results,
            processed=statuses[ProcessingStatus.PROCESSED],
            failed=statuses[ProcessingStatus.FAILED],
            ignored=statuses[ProcessingStatus.IGNORED],
            by_intent=dict(by_intent),
            by_category=dict(by_category),
            warning_count=sum(len(result.warnings) for result in results),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 3),
            quality=build_quality_report(events, duplicates_blocked=statuses[ProcessingStatus.IGNORED]),
            rejected=tuple(rejected),
        )
