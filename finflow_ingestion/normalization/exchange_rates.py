"""
Exchange-rate lookup for base-currency conversion.

``ExchangeRateTable`` is an immutable point-in-time snapshot mapping a
currency code to its multiplier into the base currency. A ``RateSource``
hands out snapshots; the normalizer takes exactly one per ``normalize`` call
so a concurrent refresh can never split one conversion across two tables.

Currencies missing from the table pass through at 1.0. Currency validity is
enforced by the validator, so a gap in the table is degraded rather than
fatal. A rate that IS present but unusable (zero, negative, non-finite, not a
Decimal) means the table itself is corrupt and raises
``InvalidExchangeRateError``.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Protocol, runtime_checkable

from finflow_kernel.exceptions import InvalidExchangeRateError
from finflow_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from finflow_config.schema import PipelineConfig

logger = get_logger("ingestion.normalization.rates")

PASS_THROUGH_RATE = Decimal("1.0")


class ExchangeRateTable:
    """Read-only currency -> multiplier snapshot."""

    def __init__(self, rates: Mapping[str, Decimal], base_currency: str):
        self._rates = MappingProxyType({code.upper(): rate for code, rate in rates.items()})
        self._base_currency = base_currency.upper()

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def rate_for(self, currency: str) -> Decimal:
        """
        Multiplier from ``currency`` into the base currency.

        Raises:
            InvalidExchangeRateError: The table holds an unusable rate.
        """
        rate = self._rates.get(currency.upper())
        if rate is None:
            return PASS_THROUGH_RATE
        if isinstance(rate, bool) or not isinstance(rate, Decimal):
            raise InvalidExchangeRateError(currency, rate, "rate is not a Decimal")
        if not rate.is_finite():
            raise InvalidExchangeRateError(currency, rate, "rate is not finite")
        if rate <= 0:
            raise InvalidExchangeRateError(currency, rate, "rate must be positive")
        return rate

    def __contains__(self, currency: object) -> bool:
        return isinstance(currency, str) and currency.upper() in self._rates

    def __len__(self) -> int:
        return len(self._rates)


@runtime_checkable
class RateSource(Protocol):
    """Supplies the rate snapshot used for one normalize call."""

    def snapshot(self) -> ExchangeRateTable:
        ...


class StaticRateSource:
    """Rates fixed at construction, typically from ``PipelineConfig``."""

    def __init__(self, table: ExchangeRateTable):
        self._table = table

    @classmethod
    def from_config(cls, config: PipelineConfig) -> StaticRateSource:
        return cls(ExchangeRateTable(config.exchange_rates, config.base_currency))

    def snapshot(self) -> ExchangeRateTable:
        return self._table


class RefreshableRateSource:
    """
    Rates replaced wholesale by an external refresh process.

    ``refresh`` swaps in a new snapshot; readers holding the previous one keep
    using it until their call completes.
    """

    def __init__(self, table: ExchangeRateTable):
        self._table = table
        self._lock = threading.Lock()

    def refresh(self, rates: Mapping[str, Decimal]) -> ExchangeRateTable:
        with self._lock:
            self._table = ExchangeRateTable(rates, self._table.base_currency)
            table = self._table
        logger.info(
            "exchange_rates_refreshed",
            extra={"base_currency": table.base_currency, "rate_count": len(table)},
        )
        return table

    def snapshot(self) -> ExchangeRateTable:
        with self._lock:
            return self._table
