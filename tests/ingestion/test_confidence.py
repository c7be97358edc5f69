"""Tests for confidence scoring and the batch quality report."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from finflow_ingestion.classification import REVIEW_THRESHOLD, annotate_confidence, score_confidence
from finflow_ingestion.domain.types import Intent, NormalizedEvent, SourceChannel
from finflow_ingestion.services.quality import build_quality_report


def _event(intent=Intent.REVENUE, amount="100", metadata=None) -> NormalizedEvent:
    return NormalizedEvent(
        id=uuid4(),
        raw_event_id=uuid4(),
        workspace_id="default_workspace",
        amount=Decimal(amount),
        currency="USD",
        base_amount=Decimal(amount),
        exchange_rate=Decimal("1"),
        date=datetime(2026, 1, 15, tzinfo=timezone.utc),
        intent=intent,
        description="Transaction",
        metadata=metadata if metadata is not None else {"category": "Sales"},
    )


class TestScoreConfidence:
    @pytest.mark.parametrize(
        "intent,amount,payload,expected",
        [
            # keyword and sign agree
            (Intent.REVENUE, "100", {"type": "sale", "source": "shopify"}, 1.0),
            (Intent.COST, "-40", {"type": "fee"}, 1.0),
            # the sign argues for revenue
            (Intent.COST, "25", {"type": "fee"}, 0.67),
            (Intent.WALLET, "500", {"type": "deposit"}, 0.67),
            (Intent.REVENUE, "25", {"type": "fee"}, 0.33),
            # "order" is evidence for both REVENUE and ORDER
            (Intent.ORDER, "100", {"type": "order"}, 0.4),
            (Intent.INVENTORY, "0", {"sku": "A-1", "quantity": "3"}, 1.0),
        ],
    )
    def test_share_of_evidence(self, intent, amount, payload, expected):
        assert score_confidence(_event(intent, amount), payload) == expected

    def test_no_evidence_scores_minimum(self):
        assert score_confidence(_event(Intent.REVENUE, "0"), {"x": 1}) == 0.1

    def test_contradicted_intent_clamped_to_minimum(self):
        assert score_confidence(_event(Intent.ORDER, "100"), {"type": "sale"}) == 0.1

    def test_description_and_category_words_count(self):
        payload = {"memo": "Monthly rent", "label": "office-expense"}
        assert score_confidence(_event(Intent.COST, "0"), payload) == 1.0


class TestAnnotateConfidence:
    def test_adds_review_fields_and_keeps_the_rest(self):
        event = _event(Intent.REVENUE, "25", {"category": "Fees", "fingerprint": "ext:a:b"})
        annotated = annotate_confidence(event, {"type": "fee"})

        assert annotated.intent is Intent.REVENUE
        assert annotated.metadata == {
            "category": "Fees",
            "fingerprint": "ext:a:b",
            "confidence": 0.33,
            "requires_review": True,
        }
        assert "confidence" not in event.metadata

    def test_confident_event_not_flagged(self):
        annotated = annotate_confidence(_event(), {"type": "sale"})
        assert annotated.metadata["confidence"] >= REVIEW_THRESHOLD
        assert annotated.metadata["requires_review"] is False

    def test_ingested_events_carry_confidence(self, service, make_payload):
        result = service.ingest_event("shopify", SourceChannel.WEBHOOK, make_payload())
        assert result.event.metadata["confidence"] == 1.0
        assert result.event.metadata["requires_review"] is False

    def test_ingest_logs_confidence(self, service, make_payload, captured_logs):
        service.ingest_event("shopify", SourceChannel.WEBHOOK, make_payload())
        processed = next(r for r in captured_logs() if r["message"] == "event_processed")
        assert processed["confidence"] == 1.0


class TestQualityReport:
    def test_counts_and_score(self):
        events = [
            _event(metadata={"category": "Sales", "confidence": 1.0, "requires_review": False}),
            _event(metadata={"category": "Uncategorized", "confidence": 0.33, "requires_review": True}),
            _event(metadata={"category": "Sales"}),
        ]
        report = build_quality_report(events, duplicates_blocked=4)

        assert report.total_records == 3
        assert report.valid_records == 2
        assert report.requires_review == 1
        assert report.low_confidence_count == 1
        assert report.uncategorized_count == 1
        assert report.duplicates_blocked == 4
        # 3 flags out of 9
        assert report.overall_score == 67

    def test_empty_batch_is_perfect(self):
        report = build_quality_report([])
        assert report.total_records == 0
        assert report.overall_score == 100

    def test_every_flag_raised_scores_zero(self):
        flagged = {"category": "Uncategorized", "confidence": 0.1, "requires_review": True}
        assert build_quality_report([_event(metadata=flagged)]).overall_score == 0
