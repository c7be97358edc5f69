"""
Deduplicator -- at-most-once acceptance per fingerprint.

Fingerprint priority (see ``compute_fingerprint``):
    1. ``source`` + source-provided external id.
    2. SHA-256 of (amount to 2 places, timestamp, source, type, category).

The seen-set is an injected ``SeenStore``. ``is_duplicate`` is a pure query;
``mark_seen`` inserts or increments. ``claim`` is the atomic form the
orchestrator uses: it decides, in one store operation, whether this run is
the first for its fingerprint. ``deduplicate`` also catches duplicates inside
the batch itself, before any of its records was seen.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from finflow_ingestion.dedup.seen_store import InMemorySeenStore, SeenEntry, SeenStore
from finflow_ingestion.domain.fingerprint import compute_fingerprint
from finflow_ingestion.domain.types import ValidatedRecord
from finflow_kernel.domain.clock import Clock, SystemClock
from finflow_kernel.logging_config import get_logger

logger = get_logger("ingestion.dedup")


@dataclass(frozen=True)
class DedupStats:
    total: int
    unique: int
    duplicates: int


@dataclass(frozen=True)
class DedupResult:
    """Batch split: first occurrence of each fingerprint vs everything else."""

    unique: tuple[ValidatedRecord, ...]
    duplicates: tuple[ValidatedRecord, ...]
    stats: DedupStats


@dataclass(frozen=True)
class TrackingStats:
    tracked_fingerprints: int
    duplicates_blocked: int


class Deduplicator:
    """Fingerprint-based duplicate detection over an injected seen-set."""

    def __init__(self, store: SeenStore | None = None, clock: Clock | None = None):
        self._store = store if store is not None else InMemorySeenStore()
        self._clock = clock or SystemClock()

    @property
    def store(self) -> SeenStore:
        return self._store

    def fingerprint(self, record: ValidatedRecord) -> str:
        return compute_fingerprint(record)

    def is_duplicate(self, record: ValidatedRecord) -> bool:
        return self._store.contains(self.fingerprint(record))

    def mark_seen(self, record: ValidatedRecord) -> SeenEntry:
        """Record a sighting. Re-marking an existing fingerprint increments its count."""
        return self._store.add(self.fingerprint(record), self._clock.now())

    def claim(self, record: ValidatedRecord) -> bool:
        """True when this call is the first sighting of the record's fingerprint."""
        return self._store.claim(self.fingerprint(record), self._clock.now())

    def release(self, record: ValidatedRecord) -> None:
        """Undo a successful ``claim`` whose pipeline run did not complete."""
        self._store.release(self.fingerprint(record))

    def deduplicate(self, records: Sequence[ValidatedRecord]) -> DedupResult:
        """Split a batch into unique and duplicate records, preserving input order."""
        unique: list[ValidatedRecord] = []
        duplicates: list[ValidatedRecord] = []

        # The first record of the batch claims its fingerprint; later ones in the same batch lose
        for record in records:
            if self.claim(record):
                unique.append(record)
            else:
                duplicates.append(record)

        stats = DedupStats(total=len(records), unique=len(unique), duplicates=len(duplicates))
        logger.info(
            "batch_deduplicated",
            extra={"total": stats.total, "unique": stats.unique, "duplicates": stats.duplicates},
        )
        return DedupResult(unique=tuple(unique), duplicates=tuple(duplicates), stats=stats)

    def tracking_stats(self) -> TrackingStats:
        entries = self._store.entries()
        return TrackingStats(
            tracked_fingerprints=len(entries),
            duplicates_blocked=sum(entry.occurrences - 1 for entry in entries),
        )

    def reset(self) -> None:
        """Empty the seen-set. Test and maintenance use only."""
        self._store.clear()
        logger.info("seen_set_cleared")
