"""
Clock -- injectable source of "now".

Pipeline code never calls ``datetime.now()`` itself. Raw-event arrival times
and seen-set first-sighting times come from the Clock handed to the
orchestrator and deduplicator, so tests can pin them.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Returns timezone-aware UTC instants."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock frozen at a given instant.

    ``now()`` keeps returning the same value until ``advance()`` moves it.
    Naive start times are taken as UTC.
    """

    def __init__(self, start: datetime | None = None):
        start = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._current = start.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, delta: timedelta | float = 1) -> datetime:
        """Move the clock forward by ``delta`` (a timedelta or seconds) and return the new time."""
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        self._current += delta
        return self._current
