"""
Confidence in a classified intent, for review routing.

The classifier decides by rules; this module measures how well the payload's
wording agrees with that decision. Every intent is scored by counting its
keywords among the words of the declared type, category, source and
description, plus the payload's field names. The amount's sign adds half a
point to REVENUE or COST. Confidence is the decided intent's share of all
points, clamped to [0.1, 1.0]; with no evidence at all it is 0.1.

Events under ``REVIEW_THRESHOLD`` are flagged ``requires_review``. Both values
go into ``metadata`` after classification; the intent itself is untouched.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Mapping

from finflow_ingestion.domain.types import Intent, NormalizedEvent
from finflow_ingestion.domain.validators import (
    CATEGORY_FIELDS,
    DESCRIPTION_FIELDS,
    SOURCE_FIELDS,
    TYPE_FIELDS,
    extract_field,
)

REVIEW_THRESHOLD = 0.5
MIN_CONFIDENCE = 0.1
SIGN_HINT = 0.5

INTENT_KEYWORDS: dict[Intent, frozenset[str]] = {
    Intent.REVENUE: frozenset(
        {"sale", "order", "payment", "income", "revenue", "subscription",
         "purchase", "checkout", "paid", "received", "earning"}
    ),
    Intent.COST: frozenset(
        {"expense", "cost", "fee", "shipping", "delivery", "marketing", "ad", "ads",
         "advertising", "salary", "rent", "utility", "refund", "commission", "tax", "vat", "duty"}
    ),
    Intent.WALLET: frozenset(
        {"wallet", "balance", "transfer", "deposit", "withdrawal", "topup", "payout", "settlement", "bank"}
    ),
    Intent.INVENTORY: frozenset(
        {"inventory", "stock", "product", "item", "sku", "quantity", "received", "adjustment", "count"}
    ),
    Intent.ORDER: frozenset(
        {"order", "fulfillment", "shipment", "delivery", "tracking", "created",
         "confirmed", "shipped", "delivered", "cancelled"}
    ),
}

_WORD_RE = re.compile(r"[a-z0-9]+")


def _evidence_words(payload: Mapping[str, Any]) -> list[str]:
    texts = [str(name) for name in payload]
    for aliases in (TYPE_FIELDS, CATEGORY_FIELDS, SOURCE_FIELDS, DESCRIPTION_FIELDS):
        _, value = extract_field(payload, aliases)
        if value is not None:
            texts.append(str(value))
    return _WORD_RE.findall(" ".join(texts).lower())


def intent_scores(amount_sign: int, payload: Mapping[str, Any]) -> dict[Intent, float]:
    """Keyword points per intent, sign hint included."""
    words = _evidence_words(payload)
    scores = {
        intent: float(sum(1 for word in words if word in keywords))
        for intent, keywords in INTENT_KEYWORDS.items()
    }
    if amount_sign > 0:
        scores[Intent.REVENUE] += SIGN_HINT
    elif amount_sign < 0:
        scores[Intent.COST] += SIGN_HINT
    return scores


def score_confidence(event: NormalizedEvent, payload: Mapping[str, Any]) -> float:
    """Share of the keyword evidence that backs ``event.intent``, rounded to 2 places."""
    sign = (event.amount > 0) - (event.amount < 0)
    scores = intent_scores(sign, payload)
    total = sum(scores.values())
    if total == 0:
        return MIN_CONFIDENCE
    share = scores.get(event.intent, 0.0) / total
    return round(min(1.0, max(MIN_CONFIDENCE, share)), 2)


def annotate_confidence(event: NormalizedEvent, payload: Mapping[str, Any]) -> NormalizedEvent:
    """Copy of the event with ``confidence`` and ``requires_review`` in its metadata."""
    confidence = score_confidence(event, payload)
    metadata = {
        **event.metadata,
        "confidence": confidence,
        "requires_review": confidence < REVIEW_THRESHOLD,
    }
    return dataclasses.replace(event, metadata=metadata)
