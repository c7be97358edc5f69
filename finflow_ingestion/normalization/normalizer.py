"""
Normalizer -- ValidatedRecord -> NormalizedEvent.

Responsibility:
    Converts the amount into the base currency, pins the event to an
    absolute UTC instant, fills reporting metadata, and assigns a
    provisional intent by sign. The classifier always overwrites that
    intent; nothing downstream may rely on it.

Invariants enforced:
    - base_amount == (amount * rate) quantized to ``base_amount_places``
      with the configured rounding mode (ROUND_HALF_UP by default).
    - One rate snapshot per call.
    - Same record + same rate table -> same event, apart from the new id.

Failure modes:
    - InvalidExchangeRateError when the snapshot holds an unusable rate.
      The orchestrator turns it into INTERNAL_ERROR.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
from decimal import Decimal, localcontext
from typing import Any, Callable, Sequence
from uuid import UUID, uuid4

from finflow_config.schema import PipelineConfig, RoundingMode
from finflow_ingestion.domain.fingerprint import compute_fingerprint
from finflow_ingestion.domain.types import Intent, NormalizedEvent, PipelineError, ValidatedRecord
from finflow_ingestion.domain.validators import parse_timestamp
from finflow_ingestion.normalization.categories import categorize, source_type
from finflow_ingestion.normalization.exchange_rates import RateSource, StaticRateSource
from finflow_kernel.logging_config import get_logger

logger = get_logger("ingestion.normalization")

# Wide enough that amount * rate is exact before quantizing
_WORKING_PRECISION = 60


def convert_to_base(
    amount: Decimal,
    rate: Decimal,
    places: int = 4,
    rounding: RoundingMode = RoundingMode.HALF_UP,
) -> Decimal:
    """round(amount * rate, places) under ``rounding``."""
    with localcontext() as ctx:
        ctx.prec = _WORKING_PRECISION
        return (amount * rate).quantize(Decimal(1).scaleb(-places), rounding=rounding.decimal_rounding)


def provisional_intent(amount: Decimal) -> Intent:
    """Sign-only placeholder: >= 0 is REVENUE, < 0 is COST."""
    return Intent.REVENUE if amount >= 0 else Intent.COST


def _as_instant(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value
    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError(f"Unparseable timestamp: {value!r}")
    return parsed


def _temporal_keys(instant: datetime) -> dict[str, str]:
    iso_year, iso_week, _ = instant.isocalendar()
    return {
        "day": instant.strftime("%Y-%m-%d"),
        "week": f"{iso_year}-W{iso_week:02d}",
        "month": instant.strftime("%Y-%m"),
    }


class Normalizer:
    """Builds NormalizedEvents from validated records."""

    def __init__(
        self,
        config: PipelineConfig,
        rate_source: RateSource | None = None,
        id_factory: Callable[[], UUID] = uuid4,
    ):
        self._config = config
        self._rate_source = rate_source or StaticRateSource.from_config(config)
        self._id_factory = id_factory

    def normalize(
        self,
        raw_event_id: UUID,
        record: ValidatedRecord,
        warnings: Sequence[PipelineError] = (),
    ) -> NormalizedEvent:
        rates = self._rate_source.snapshot()
        rate = rates.rate_for(record.currency)
        base_amount = convert_to_base(
            record.amount,
            rate,
            self._config.base_amount_places,
            self._config.rounding,
        )
        instant = _as_instant(record.timestamp)
        if instant is not record.timestamp:
            record = dataclasses.replace(record, timestamp=instant)

        metadata: dict[str, Any] = {
            "category": categorize(record.category, record.record_type, record.source),
            "source": record.source,
            "source_type": source_type(record.source),
            "record_type": record.record_type,
            "record_id": record.record_id,
            "fingerprint": compute_fingerprint(record),
            **_temporal_keys(instant),
        }
        if warnings:
            metadata["warnings"] = [w.code for w in warnings]

        event = NormalizedEvent(
            id=self._id_factory(),
            raw_event_id=raw_event_id,
            workspace_id=self._config.workspace_id,
            amount=record.amount,
            currency=record.currency,
            base_amount=base_amount,
            exchange_rate=rate,
            date=instant,
            intent=provisional_intent(record.amount),
            description=record.description or f"Transaction from {record.source}",
            external_id=record.external_id,
            metadata=metadata,
        )

        logger.debug(
            "event_normalized",
            extra={
                "normalized_event_id": str(event.id),
                "currency": record.currency,
                "exchange_rate": str(rate),
                "base_amount": str(base_amount),
                "base_currency": rates.base_currency,
            },
        )
        return event
