"""Batch data-quality summary over the normalized events a run accepted."""

from __future__ import annotations

from typing import Sequence

from finflow_ingestion.classification.confidence import REVIEW_THRESHOLD
from finflow_ingestion.domain.types import NormalizedEvent, QualityReport
from finflow_ingestion.normalization.categories import UNCATEGORIZED


def build_quality_report(events: Sequence[NormalizedEvent], duplicates_blocked: int = 0) -> QualityReport:
    """
    Count review flags, low-confidence and uncategorized events.

    An empty batch scores 100. Events scored before confidence existed (no
    ``confidence`` in metadata) count as fully confident.
    """
    requires_review = sum(1 for event in events if event.metadata.get("requires_review"))
    low_confidence = sum(1 for event in events if event.metadata.get("confidence", 1.0) < REVIEW_THRESHOLD)
    uncategorized = sum(1 for event in events if event.metadata.get("category") == UNCATEGORIZED)

    flags_possible = max(len(events), 1) * 3
    issue_rate = (requires_review + low_confidence + uncategorized) / flags_possible
    score = max(0.0, min(100.0, (1 - issue_rate) * 100))

    return QualityReport(
        total_records=len(events),
        valid_records=len(events) - requires_review,
        requires_review=requires_review,
        low_confidence_count=low_confidence,
        uncategorized_count=uncategorized,
        duplicates_blocked=duplicates_blocked,
        overall_score=int(score + 0.5),
    )
