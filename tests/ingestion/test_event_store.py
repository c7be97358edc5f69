"""
Tests for the persistence collaborators.

Both stores must honor the same contract: payloads are kept as received,
status only moves PENDING -> terminal, and the fingerprint backstop answers
from persisted normalized events.
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from finflow_ingestion.domain.types import (
    Intent,
    NormalizedEvent,
    PipelineError,
    ProcessingStatus,
    RawEvent,
    Severity,
    SourceChannel,
)
from finflow_ingestion.services import EventStore, InMemoryEventStore, IngestionService, SqlEventStore
from finflow_ingestion.services.event_store import check_transition
from finflow_kernel.exceptions import InvalidStatusTransitionError, RawEventNotFoundError

RECEIVED = datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryEventStore()
    return SqlEventStore(request.getfixturevalue("session_factory"))


def _raw(payload=None) -> RawEvent:
    return RawEvent(
        id=uuid4(),
        source_id="shopify",
        channel=SourceChannel.WEBHOOK,
        payload=payload if payload is not None else {"amount": "100.00", "currency": "USD"},
        received_at=RECEIVED,
    )


def _normalized(raw_event_id, fingerprint="ext:shopify:shp_555") -> NormalizedEvent:
    return NormalizedEvent(
        id=uuid4(),
        raw_event_id=raw_event_id,
        workspace_id="default_workspace",
        amount=Decimal("100"),
        currency="USD",
        base_amount=Decimal("5050"),
        exchange_rate=Decimal("50.5"),
        date=datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc),
        intent=Intent.REVENUE,
        description="Transaction from shopify",
        external_id="shp_555",
        metadata={"category": "Sales", "fingerprint": fingerprint},
    )


class TestProtocol:
    def test_both_stores_satisfy_protocol(self, session_factory):
        assert isinstance(InMemoryEventStore(), EventStore)
        assert isinstance(SqlEventStore(session_factory), EventStore)


class TestRawEvents:
    def test_round_trip(self, store):
        raw = _raw({"amount": "1,250.50", "tags": ["a", "b"], "nested": {"k": 1}})
        store.insert_raw_event(raw)
        loaded = store.get_raw_event(raw.id)
        assert loaded.payload == raw.payload
        assert loaded.status is ProcessingStatus.PENDING
        assert loaded.channel is SourceChannel.WEBHOOK
        assert loaded.received_at == RECEIVED

    def test_unknown_id(self, store):
        with pytest.raises(RawEventNotFoundError):
            store.get_raw_event(uuid4())

    def test_non_object_payload_kept(self, store):
        raw = _raw(["not", "an", "object"])
        store.insert_raw_event(raw)
        assert store.get_raw_event(raw.id).payload == ["not", "an", "object"]


class TestStatus:
    @pytest.mark.parametrize(
        "status",
        [ProcessingStatus.PROCESSED, ProcessingStatus.FAILED, ProcessingStatus.IGNORED],
    )
    def test_pending_to_terminal(self, store, status):
        raw = _raw()
        store.insert_raw_event(raw)
        store.update_status(raw.id, status, "why")
        loaded = store.get_raw_event(raw.id)
        assert loaded.status is status
        assert loaded.status_reason == "why"

    def test_terminal_is_final(self, store):
        raw = _raw()
        store.insert_raw_event(raw)
        store.update_status(raw.id, ProcessingStatus.IGNORED, "Duplicate Detected")
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            store.update_status(raw.id, ProcessingStatus.PROCESSED)
        assert exc_info.value.current_status == "ignored"
        assert store.get_raw_event(raw.id).status is ProcessingStatus.IGNORED

    def test_unknown_id(self, store):
        with pytest.raises(RawEventNotFoundError):
            store.update_status(uuid4(), ProcessingStatus.FAILED)

    def test_check_transition_rejects_pending_target(self):
        with pytest.raises(InvalidStatusTransitionError):
            check_transition(uuid4(), ProcessingStatus.PENDING, ProcessingStatus.PENDING)


class TestErrors:
    def test_errors_attached_to_raw_event(self, store):
        raw = _raw()
        store.insert_raw_event(raw)
        error = PipelineError(
            code="VALIDATION_ERROR",
            message="Payload failed schema validation",
            severity=Severity.ERROR,
            details={"errors": [{"code": "INVALID_AMOUNT", "field": "amount"}]},
        )
        store.insert_error(error, raw.id)
        assert store.get_errors(raw.id) == [error]

    def test_error_for_unknown_event(self, store):
        error = PipelineError(code="INTERNAL_ERROR", message="x", severity=Severity.FATAL)
        with pytest.raises(RawEventNotFoundError):
            store.insert_error(error, uuid4())

    def test_no_errors(self, store):
        raw = _raw()
        store.insert_raw_event(raw)
        assert store.get_errors(raw.id) == []


class TestNormalizedEvents:
    def test_save_and_load(self, store):
        raw = _raw()
        store.insert_raw_event(raw)
        event = _normalized(raw.id)
        store.save_normalized_event(event)

        loaded = store.get_normalized_event(raw.id)
        assert loaded.id == event.id
        assert loaded.base_amount == Decimal("5050")
        assert loaded.exchange_rate == Decimal("50.5")
        assert loaded.intent is Intent.REVENUE
        assert loaded.date == event.date
        assert loaded.metadata == event.metadata
        assert loaded.fingerprint == "ext:shopify:shp_555"

    def test_missing(self, store):
        assert store.get_normalized_event(uuid4()) is None

    def test_external_duplicate_backstop(self, store):
        raw = _raw()
        store.insert_raw_event(raw)
        assert not store.check_external_duplicate("ext:shopify:shp_555")
        store.save_normalized_event(_normalized(raw.id))
        assert store.check_external_duplicate("ext:shopify:shp_555")
        assert not store.check_external_duplicate("ext:stripe:shp_555")


class TestSaveProcessed:
    def test_event_and_status_written_together(self, store):
        raw = _raw()
        store.insert_raw_event(raw)
        store.save_processed(_normalized(raw.id))

        assert store.get_raw_event(raw.id).status is ProcessingStatus.PROCESSED
        assert store.get_normalized_event(raw.id).external_id == "shp_555"
        assert store.check_external_duplicate("ext:shopify:shp_555")

    def test_refused_transition_leaves_nothing(self, store):
        raw = _raw()
        store.insert_raw_event(raw)
        store.update_status(raw.id, ProcessingStatus.FAILED, "boom")

        with pytest.raises(InvalidStatusTransitionError):
            store.save_processed(_normalized(raw.id))
        assert store.get_normalized_event(raw.id) is None
        assert not store.check_external_duplicate("ext:shopify:shp_555")

    def test_sql_status_failure_rolls_back_the_event(self, session_factory):
        class StatusWriteFails(SqlEventStore):
            def _apply_status(self, session, event_id, status, reason):
                raise RuntimeError("connection lost")

        store = StatusWriteFails(session_factory)
        raw = _raw()
        store.insert_raw_event(raw)

        with pytest.raises(RuntimeError):
            store.save_processed(_normalized(raw.id))
        assert store.get_normalized_event(raw.id) is None
        assert store.get_raw_event(raw.id).status is ProcessingStatus.PENDING
        assert not store.check_external_duplicate("ext:shopify:shp_555")


class TestExactAmounts:
    def test_sql_keeps_every_digit(self, session_factory):
        store = SqlEventStore(session_factory)
        raw = _raw()
        store.insert_raw_event(raw)
        event = replace(
            _normalized(raw.id),
            amount=Decimal("12345678901234567.123456789"),
            base_amount=Decimal("623456790512345678.734567835"),
            exchange_rate=Decimal("50.500000001"),
        )
        store.save_processed(event)

        loaded = store.get_normalized_event(raw.id)
        assert loaded.amount == Decimal("12345678901234567.123456789")
        assert loaded.base_amount == Decimal("623456790512345678.734567835")
        assert loaded.exchange_rate == Decimal("50.500000001")
        assert isinstance(loaded.amount, Decimal)

    def test_widest_amount_survives(self, session_factory):
        store = SqlEventStore(session_factory)
        raw = _raw()
        store.insert_raw_event(raw)
        widest = Decimal("9" * 29 + "." + "9" * 9)
        store.save_processed(replace(_normalized(raw.id), amount=widest, base_amount=widest))

        assert store.get_normalized_event(raw.id).amount == widest


class TestSqlPipeline:
    """The full pipeline against SQLite, sequentially (one shared connection)."""

    def test_end_to_end(self, session_factory, pipeline_config, deduplicator, make_payload):
        store = SqlEventStore(session_factory)
        service = IngestionService(store, pipeline_config, deduplicator=deduplicator)

        processed = service.ingest("shopify", SourceChannel.WEBHOOK, make_payload(external_id="shp_555"))
        ignored = service.ingest("shopify", SourceChannel.WEBHOOK, make_payload(external_id="shp_555"))
        failed = service.ingest("shopify", SourceChannel.WEBHOOK, make_payload(amount="abc"))

        assert service.get_status(processed) is ProcessingStatus.PROCESSED
        assert service.get_status(ignored) is ProcessingStatus.IGNORED
        assert service.get_status(failed) is ProcessingStatus.FAILED
        assert store.get_normalized_event(processed).base_amount == Decimal("5050")
        assert store.get_errors(ignored) == []
        [error] = store.get_errors(failed)
        assert error.details["errors"][0]["code"] == "INVALID_AMOUNT"
