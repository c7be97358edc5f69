"""Tests for intent classification (ordered, first match wins)."""

from dataclasses import fields
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from finflow_ingestion.classification import DEFAULT_RULES, ClassificationRule, Classifier, classify, declared_type
from finflow_ingestion.domain.types import Intent, NormalizedEvent, SourceChannel


def _event(amount="100", intent=Intent.REVENUE) -> NormalizedEvent:
    return NormalizedEvent(
        id=uuid4(),
        raw_event_id=uuid4(),
        workspace_id="default_workspace",
        amount=Decimal(amount),
        currency="EGP",
        base_amount=Decimal(amount),
        exchange_rate=Decimal("1"),
        date=datetime(2026, 1, 15, tzinfo=timezone.utc),
        intent=intent,
        description="Transaction from shopify",
        metadata={"category": "Sales"},
    )


WEBHOOK = SourceChannel.WEBHOOK


class TestDeclaredType:
    def test_aliases_and_case(self):
        assert declared_type({"type": " Order "}) == "order"
        assert declared_type({"transaction_type": "DEPOSIT"}) == "deposit"
        assert declared_type({"kind": "refund"}) == "refund"

    def test_absent_or_non_string(self):
        assert declared_type({}) is None
        assert declared_type({"type": 7}) is None


class TestRules:
    @pytest.mark.parametrize(
        "payload",
        [
            {"sku": "A-1", "quantity": 3},
            {"sku": "A-1", "qty": 0},
            {"sku": "A-1", "inventory_delta": -2},
        ],
    )
    def test_inventory(self, payload):
        assert classify(_event(), WEBHOOK, payload).intent is Intent.INVENTORY

    def test_sku_alone_is_not_inventory(self):
        assert classify(_event(), WEBHOOK, {"sku": "A-1"}).intent is Intent.REVENUE

    def test_quantity_none_is_not_inventory(self):
        assert classify(_event(), WEBHOOK, {"sku": "A-1", "quantity": None}).intent is Intent.REVENUE

    @pytest.mark.parametrize(
        "payload",
        [{"type": "order"}, {"type": "ORDER"}, {"line_items": []}, {"lineItems": [{"sku": "A-1"}]}],
    )
    def test_order(self, payload):
        assert classify(_event(), WEBHOOK, payload).intent is Intent.ORDER

    def test_line_items_must_be_a_collection(self):
        assert classify(_event(), WEBHOOK, {"line_items": "3"}).intent is Intent.REVENUE

    @pytest.mark.parametrize("kind", ["transfer", "Deposit", "WITHDRAWAL"])
    def test_wallet(self, kind):
        assert classify(_event(), WEBHOOK, {"type": kind}).intent is Intent.WALLET

    def test_non_negative_is_revenue(self):
        assert classify(_event("0"), WEBHOOK, {"type": "sale"}).intent is Intent.REVENUE

    def test_refund_is_cost(self):
        assert classify(_event("40"), WEBHOOK, {"type": "Refund"}).intent is Intent.COST

    def test_negative_is_cost(self):
        assert classify(_event("-500", Intent.COST), WEBHOOK, {"type": "fee"}).intent is Intent.COST

    def test_negative_without_type_is_cost(self):
        assert classify(_event("-1", Intent.COST), WEBHOOK, {}).intent is Intent.COST


class TestOrdering:
    def test_inventory_beats_wallet(self):
        payload = {"sku": "A-1", "quantity": 5, "type": "transfer"}
        assert classify(_event(), WEBHOOK, payload).intent is Intent.INVENTORY

    def test_inventory_beats_order(self):
        payload = {"sku": "A-1", "quantity": 5, "type": "order"}
        assert classify(_event(), WEBHOOK, payload).intent is Intent.INVENTORY

    def test_order_beats_refund(self):
        payload = {"type": "refund", "line_items": [{"sku": "A-1"}]}
        assert classify(_event(), WEBHOOK, payload).intent is Intent.ORDER

    def test_wallet_beats_sign(self):
        assert classify(_event("-75", Intent.COST), WEBHOOK, {"type": "withdrawal"}).intent is Intent.WALLET

    def test_rule_order(self):
        assert [r.name for r in DEFAULT_RULES] == ["inventory_movement", "order", "wallet_movement", "amount_sign"]

    def test_explain_names_the_deciding_rule(self):
        intent, rule = Classifier().explain(_event(), {"sku": "A-1", "quantity": 1, "type": "transfer"})
        assert (intent, rule) == (Intent.INVENTORY, "inventory_movement")


class TestClassifierContract:
    def test_only_intent_changes(self):
        event = _event()
        result = classify(event, WEBHOOK, {"type": "deposit"})
        for f in fields(NormalizedEvent):
            if f.name != "intent":
                assert getattr(result, f.name) == getattr(event, f.name)

    def test_input_event_not_mutated(self):
        event = _event()
        classify(event, WEBHOOK, {"type": "deposit"})
        assert event.intent is Intent.REVENUE

    def test_provisional_intent_overwritten(self):
        # Normalizer says REVENUE by sign; declared refund makes it COST
        assert classify(_event("10", Intent.REVENUE), SourceChannel.API, {"type": "refund"}).intent is Intent.COST

    def test_rules_are_injectable(self):
        always_wallet = ClassificationRule("always_wallet", lambda event, payload: Intent.WALLET)
        assert Classifier((always_wallet,)).classify(_event(), WEBHOOK, {}).intent is Intent.WALLET

    def test_no_matching_rule(self):
        never = ClassificationRule("never", lambda event, payload: None)
        with pytest.raises(LookupError):
            Classifier((never,)).classify(_event(), WEBHOOK, {})

    def test_empty_rule_list_rejected(self):
        with pytest.raises(ValueError):
            Classifier(())
