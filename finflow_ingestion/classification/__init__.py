"""Intent classification (ordered, first-match-wins rules) and confidence scoring."""

from finflow_ingestion.classification.classifier import (
    DEFAULT_RULES,
    ClassificationRule,
    Classifier,
    classify,
    declared_type,
)
from finflow_ingestion.classification.confidence import (
    REVIEW_THRESHOLD,
    annotate_confidence,
    score_confidence,
)

__all__ = [
    "DEFAULT_RULES",
    "REVIEW_THRESHOLD",
    "ClassificationRule",
    "Classifier",
    "annotate_confidence",
    "classify",
    "declared_type",
    "score_confidence",
]
