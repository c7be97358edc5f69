"""Normalization: base-currency conversion, category labels, provisional intent."""

from finflow_ingestion.normalization.categories import CATEGORY_MAPPINGS, categorize, source_type
from finflow_ingestion.normalization.exchange_rates import (
    PASS_THROUGH_RATE,
    ExchangeRateTable,
    RateSource,
    RefreshableRateSource,
    StaticRateSource,
)
from finflow_ingestion.normalization.normalizer import (
    Normalizer,
    convert_to_base,
    provisional_intent,
)

__all__ = [
    "CATEGORY_MAPPINGS",
    "PASS_THROUGH_RATE",
    "ExchangeRateTable",
    "Normalizer",
    "RateSource",
    "RefreshableRateSource",
    "StaticRateSource",
    "categorize",
    "convert_to_base",
    "provisional_intent",
    "source_type",
]
