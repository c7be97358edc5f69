"""Pure kernel domain: clock and currency registry. ZERO I/O."""

from finflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from finflow_kernel.domain.currency import CurrencyRegistry

__all__ = [
    "Clock",
    "CurrencyRegistry",
    "DeterministicClock",
    "SystemClock",
]
