"""Deduplication: fingerprint seen-set with atomic claims, batch dedup."""

from finflow_ingestion.dedup.deduplicator import DedupResult, DedupStats, Deduplicator, TrackingStats
from finflow_ingestion.dedup.seen_store import InMemorySeenStore, SeenEntry, SeenStore, SqlSeenStore

__all__ = [
    "DedupResult",
    "DedupStats",
    "Deduplicator",
    "InMemorySeenStore",
    "SeenEntry",
    "SeenStore",
    "SqlSeenStore",
    "TrackingStats",
]
