"""
Pytest fixtures for the finflow test suite.

Provides:
- Structured logging setup and log capture
- Deterministic clock and the default pipeline configuration
- In-memory and SQLite-backed persistence collaborators
- A payload factory for well-formed deliveries
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from finflow_config import get_active_config
from finflow_config.schema import PipelineConfig
from finflow_ingestion.dedup import Deduplicator, InMemorySeenStore
from finflow_ingestion.domain.validators import RecordValidator
from finflow_ingestion.normalization import Normalizer
from finflow_ingestion.services import InMemoryEventStore, IngestionService
from finflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from finflow_kernel.domain.clock import DeterministicClock
from finflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Registers the pipeline tables on Base.metadata
import finflow_ingestion.models  # noqa: F401

FIXED_NOW = datetime(2026, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture finflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.ingest(...)
            logs = captured_logs()
            assert any(r["message"] == "event_processed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("finflow")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Configuration and clock
# =============================================================================


@pytest.fixture(scope="session")
def pipeline_config() -> PipelineConfig:
    return get_active_config()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def make_payload():
    """Build a well-formed payload; keyword arguments override or add fields."""

    def _make(**overrides):
        payload = {
            "amount": "100.00",
            "currency": "USD",
            "timestamp": "2026-01-15T10:00:00Z",
            "source": "shopify",
            "type": "sale",
        }
        payload.update(overrides)
        return {k: v for k, v in payload.items() if v is not None}

    return _make


# =============================================================================
# Pipeline collaborators
# =============================================================================


@pytest.fixture
def validator(pipeline_config) -> RecordValidator:
    return RecordValidator.from_config(pipeline_config)


@pytest.fixture
def normalizer(pipeline_config) -> Normalizer:
    return Normalizer(pipeline_config)


@pytest.fixture
def seen_store() -> InMemorySeenStore:
    return InMemorySeenStore()


@pytest.fixture
def deduplicator(seen_store, deterministic_clock) -> Deduplicator:
    return Deduplicator(seen_store, deterministic_clock)


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def service(event_store, pipeline_config, deduplicator, deterministic_clock) -> IngestionService:
    return IngestionService(
        event_store,
        pipeline_config,
        deduplicator=deduplicator,
        clock=deterministic_clock,
    )


# =============================================================================
# SQLite database
# =============================================================================


@pytest.fixture
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    """Fresh in-memory SQLite database with the pipeline tables."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    s = session_factory()
    yield s
    s.rollback()
    s.close()
