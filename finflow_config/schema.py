"""
Pipeline configuration schema.

YAML files are parsed into these frozen types by the loader and vetted by
the validator before ``get_active_config()`` hands them to the pipeline.
The resulting ``PipelineConfig`` is read-only, process-wide configuration:
it is loaded once at startup and never mutated during event handling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from enum import Enum


class RoundingMode(str, Enum):
    """Rounding applied to base-currency amounts."""

    HALF_UP = "half_up"  # Round half away from zero
    HALF_EVEN = "half_even"  # Banker's rounding

    @property
    def decimal_rounding(self) -> str:
        """The ``decimal`` module constant for this mode."""
        if self is RoundingMode.HALF_EVEN:
            return ROUND_HALF_EVEN
        return ROUND_HALF_UP


@dataclass(frozen=True)
class PipelineConfig:
    """Runtime configuration for validation, normalization and persistence."""

    config_id: str
    version: int
    workspace_id: str
    base_currency: str
    exchange_rates: dict[str, Decimal]
    known_currencies: frozenset[str]
    known_sources: frozenset[str] = frozenset()
    sale_types: frozenset[str] = frozenset({"sale"})
    base_amount_places: int = 4
    rounding: RoundingMode = RoundingMode.HALF_UP
    checksum: str = field(default="", compare=False)
