"""
Configuration Validator (``finflow_config.validator``).

Checks a parsed ``PipelineConfig`` before it is handed to the pipeline:

* every known currency and every rated currency is a real ISO 4217 code;
* the base currency is a known currency and rates 1:1 when it has a rate;
* every exchange rate is finite and strictly positive;
* the base-amount precision is sane;
* the workspace id is non-empty.

A config with errors MUST NOT be used. Warnings are informational.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from finflow_config.schema import PipelineConfig
from finflow_kernel.domain.currency import CurrencyRegistry
from finflow_kernel.exceptions import InvalidCurrencyError


@dataclass
class ConfigValidationResult:
    """Errors block use of the config; warnings do not."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_configuration(config: PipelineConfig) -> ConfigValidationResult:
    """Run every configuration check and collect all problems."""
    result = ConfigValidationResult()

    if not config.workspace_id.strip():
        result.errors.append("workspace_id must be non-empty")

    if not config.known_currencies:
        result.errors.append("known_currencies must list at least one currency")

    for code in sorted(config.known_currencies):
        try:
            CurrencyRegistry.validate(code)
        except InvalidCurrencyError as exc:
            result.errors.append(f"known_currencies: {exc}")

    if config.base_currency not in config.known_currencies:
        result.errors.append(
            f"base_currency {config.base_currency!r} is not in known_currencies"
        )

    for code, rate in sorted(config.exchange_rates.items()):
        if not CurrencyRegistry.is_valid(code):
            result.errors.append(f"exchange_rates: {code!r} is not an ISO 4217 code")
        if not rate.is_finite() or rate <= 0:
            result.errors.append(f"exchange_rates: {code} rate must be finite and > 0, got {rate}")
        elif code not in config.known_currencies:
            result.warnings.append(f"exchange_rates: {code} is rated but not accepted by validation")

    base_rate = config.exchange_rates.get(config.base_currency)
    if base_rate is not None and base_rate.is_finite() and base_rate != Decimal("1"):
        result.errors.append(
            f"exchange_rates: base currency {config.base_currency} must rate 1, got {base_rate}"
        )

    for code in sorted(config.known_currencies - set(config.exchange_rates)):
        result.warnings.append(f"{code} has no exchange rate; amounts pass through at 1.0")

    if not 0 <= config.base_amount_places <= 9:
        result.errors.append(
            f"base_amount_places must be between 0 and 9, got {config.base_amount_places}"
        )

    return result
