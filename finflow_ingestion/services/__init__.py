"""Ingestion services: orchestration and persistence collaborators."""

from finflow_ingestion.services.event_store import EventStore, InMemoryEventStore, SqlEventStore
from finflow_ingestion.services.ingestion_service import IngestionService

__all__ = [
    "EventStore",
    "InMemoryEventStore",
    "IngestionService",
    "SqlEventStore",
]
