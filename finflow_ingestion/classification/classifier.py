"""
Intent classifier -- ordered decision list over payload hints and amount sign.

Rules are evaluated in a fixed order and the first rule that returns an
intent wins:

    1. INVENTORY  SKU present together with a quantity or inventory delta
    2. ORDER      declared type ``order`` or a line-items collection
    3. WALLET     declared type ``transfer`` / ``deposit`` / ``withdrawal``
    4. REVENUE / COST by sign; a non-negative ``refund`` is COST

The order is a documented tie-break: a stock transfer (SKU + quantity +
type ``transfer``) is INVENTORY, never WALLET. Only ``intent`` of the event
changes.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from finflow_ingestion.domain.types import Intent, NormalizedEvent, SourceChannel
from finflow_ingestion.domain.validators import TYPE_FIELDS, extract_field
from finflow_kernel.logging_config import get_logger

logger = get_logger("ingestion.classification")

SKU_FIELDS = ("sku", "SKU")
QUANTITY_FIELDS = ("quantity", "qty")
INVENTORY_DELTA_FIELDS = ("inventory_delta", "quantity_delta", "stock_change")
LINE_ITEM_FIELDS = ("line_items", "lineItems")

ORDER_TYPES = frozenset({"order"})
WALLET_TYPES = frozenset({"transfer", "deposit", "withdrawal"})
REFUND_TYPES = frozenset({"refund"})


def declared_type(payload: Mapping[str, Any]) -> str | None:
    """The payload's declared type, lower-cased, if it has one."""
    _, value = extract_field(payload, TYPE_FIELDS)
    if isinstance(value, str):
        return value.strip().lower()
    return None


def _has_any(payload: Mapping[str, Any], fields: tuple[str, ...]) -> bool:
    return any(payload.get(name) is not None for name in fields)


def _inventory(event: NormalizedEvent, payload: Mapping[str, Any]) -> Intent | None:
    if _has_any(payload, SKU_FIELDS) and (
        _has_any(payload, QUANTITY_FIELDS) or _has_any(payload, INVENTORY_DELTA_FIELDS)
    ):
        return Intent.INVENTORY
    return None


def _order(event: NormalizedEvent, payload: Mapping[str, Any]) -> Intent | None:
    if declared_type(payload) in ORDER_TYPES:
        return Intent.ORDER
    if any(isinstance(payload.get(name), (list, tuple)) for name in LINE_ITEM_FIELDS):
        return Intent.ORDER
    return None


def _wallet(event: NormalizedEvent, payload: Mapping[str, Any]) -> Intent | None:
    if declared_type(payload) in WALLET_TYPES:
        return Intent.WALLET
    return None


def _revenue_or_cost(event: NormalizedEvent, payload: Mapping[str, Any]) -> Intent:
    if event.amount < 0:
        return Intent.COST
    if declared_type(payload) in REFUND_TYPES:
        return Intent.COST
    return Intent.REVENUE


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    match: Callable[[NormalizedEvent, Mapping[str, Any]], Intent | None]


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("inventory_movement", _inventory),
    ClassificationRule("order", _order),
    ClassificationRule("wallet_movement", _wallet),
    ClassificationRule("amount_sign", _revenue_or_cost),
)


class Classifier:
    """Applies an ordered rule list; the last rule must always match."""

    def __init__(self, rules: tuple[ClassificationRule, ...] = DEFAULT_RULES):
        if not rules:
            raise ValueError("Classifier needs at least one rule")
        self._rules = rules

    def explain(self, event: NormalizedEvent, payload: Mapping[str, Any]) -> tuple[Intent, str]:
        """Return (intent, name of the rule that decided it)."""
        for rule in self._rules:
            intent = rule.match(event, payload)
            if intent is not None:
                return intent, rule.name
        raise LookupError(f"No classification rule matched event {event.id}")

    def classify(
        self,
        event: NormalizedEvent,
        channel: SourceChannel,
        payload: Mapping[str, Any],
    ) -> NormalizedEvent:
        intent, rule_name = self.explain(event, payload)
        logger.debug(
            "event_classified",
            extra={
                "normalized_event_id": str(event.id),
                "intent": intent.value,
                "provisional_intent": event.intent.value,
                "rule": rule_name,
                "channel": channel.value,
            },
        )
        if intent is event.intent:
            return event
        return dataclasses.replace(event, intent=intent)


_default_classifier = Classifier()


def classify(event: NormalizedEvent, channel: SourceChannel, payload: Mapping[str, Any]) -> NormalizedEvent:
    """Classify with the default rule list."""
    return _default_classifier.classify(event, channel, payload)
