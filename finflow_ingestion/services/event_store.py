"""
Persistence collaborators for the ingestion pipeline.

Responsibility:
    ``EventStore`` is the narrow save/query boundary the orchestrator talks
    to. Two implementations:

    InMemoryEventStore -- thread-safe dicts; tests and single-process runs.
    SqlEventStore      -- SQLAlchemy ORM, one short transaction per call
                          from an injected ``sessionmaker``.

Invariants enforced:
    - A raw event's payload is written once and never updated.
    - Status moves only PENDING -> PROCESSED | FAILED | IGNORED; leaving a
      terminal status raises ``InvalidStatusTransitionError``.
    - ``check_external_duplicate`` answers from persisted normalized events,
      so it outlives any in-process seen-set.
    - ``save_processed`` stores the normalized event and moves its raw event
      to PROCESSED together: either both happen or neither does.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from finflow_ingestion.domain.types import (
    NormalizedEvent,
    PipelineError,
    ProcessingStatus,
    RawEvent,
)
from finflow_ingestion.models.staging import (
    NormalizedEventModel,
    PipelineErrorModel,
    RawEventModel,
)
from finflow_kernel.exceptions import InvalidStatusTransitionError, RawEventNotFoundError
from finflow_kernel.logging_config import get_logger

logger = get_logger("ingestion.store")


def check_transition(event_id: UUID, current: ProcessingStatus, requested: ProcessingStatus) -> None:
    """Only PENDING -> terminal is allowed."""
    if current.is_terminal or not requested.is_terminal:
        raise InvalidStatusTransitionError(str(event_id), current.value, requested.value)


@runtime_checkable
class EventStore(Protocol):
    """Save/query interface consumed by ``IngestionService``."""

    def insert_raw_event(self, event: RawEvent) -> None:
        ...

    def update_status(self, event_id: UUID, status: ProcessingStatus, reason: str | None = None) -> None:
        ...

    def insert_error(self, error: PipelineError, raw_event_id: UUID) -> None:
        ...

    def save_normalized_event(self, event: NormalizedEvent) -> None:
        ...

    def save_processed(self, event: NormalizedEvent) -> None:
        """Persist the normalized event and mark its raw event PROCESSED, atomically."""
        ...

    def check_external_duplicate(self, fingerprint: str) -> bool:
        ...

    def get_raw_event(self, event_id: UUID) -> RawEvent:
        ...

    def get_errors(self, raw_event_id: UUID) -> list[PipelineError]:
        ...

    def get_normalized_event(self, raw_event_id: UUID) -> NormalizedEvent | None:
        ...


class InMemoryEventStore:
    """Dict-backed store guarded by a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._raw: dict[UUID, RawEvent] = {}
        self._errors: dict[UUID, list[PipelineError]] = {}
        self._normalized: dict[UUID, NormalizedEvent] = {}
        self._fingerprints: set[str] = set()

    def insert_raw_event(self, event: RawEvent) -> None:
        with self._lock:
            if event.id in self._raw:
                raise ValueError(f"Raw event {event.id} already stored")
            self._raw[event.id] = event

    def _apply_status(self, event_id: UUID, status: ProcessingStatus, reason: str | None) -> None:
        # Caller holds self._lock
        current = self._raw.get(event_id)
        if current is None:
            raise RawEventNotFoundError(str(event_id))
        check_transition(event_id, current.status, status)
        self._raw[event_id] = replace(current, status=status, status_reason=reason)

    def update_status(self, event_id: UUID, status: ProcessingStatus, reason: str | None = None) -> None:
        with self._lock:
            self._apply_status(event_id, status, reason)

    def insert_error(self, error: PipelineError, raw_event_id: UUID) -> None:
        with self._lock:
            if raw_event_id not in self._raw:
                raise RawEventNotFoundError(str(raw_event_id))
            self._errors.setdefault(raw_event_id, []).append(error)

    def save_normalized_event(self, event: NormalizedEvent) -> None:
        with self._lock:
            if event.raw_event_id not in self._raw:
                raise RawEventNotFoundError(str(event.raw_event_id))
            self._normalized[event.raw_event_id] = event
            if event.fingerprint:
                self._fingerprints.add(event.fingerprint)

    def save_processed(self, event: NormalizedEvent) -> None:
        with self._lock:
            # Status first: a refused transition leaves nothing behind
            self._apply_status(event.raw_event_id, ProcessingStatus.PROCESSED, None)
            self._normalized[event.raw_event_id] = event
            if event.fingerprint:
                self._fingerprints.add(event.fingerprint)

    def check_external_duplicate(self, fingerprint: str) -> bool:
        with self._lock:
            return fingerprint in self._fingerprints

    def get_raw_event(self, event_id: UUID) -> RawEvent:
        with self._lock:
            event = self._raw.get(event_id)
        if event is None:
            raise RawEventNotFoundError(str(event_id))
        return event

    def get_errors(self, raw_event_id: UUID) -> list[PipelineError]:
        with self._lock:
            return list(self._errors.get(raw_event_id, ()))

    def get_normalized_event(self, raw_event_id: UUID) -> NormalizedEvent | None:
        with self._lock:
            return self._normalized.get(raw_event_id)

    def normalized_events(self) -> list[NormalizedEvent]:
        with self._lock:
            return list(self._normalized.values())

    def raw_events(self) -> list[RawEvent]:
        with self._lock:
            return list(self._raw.values())


class SqlEventStore:
    """
    ORM-backed store.

    Takes a session factory rather than a session: every call opens its own
    session and commits before returning, so worker threads never share one.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def insert_raw_event(self, event: RawEvent) -> None:
        with self._session_factory() as session:
            session.add(RawEventModel.from_dto(event))
            session.commit()

    def _apply_status(self, session: Session, event_id: UUID, status: ProcessingStatus, reason: str | None) -> None:
        row = session.get(RawEventModel, event_id, with_for_update=True)
        if row is None:
            raise RawEventNotFoundError(str(event_id))
        check_transition(event_id, ProcessingStatus(row.status), status)
        row.status = status.value
        row.status_reason = reason

    def update_status(self, event_id: UUID, status: ProcessingStatus, reason: str | None = None) -> None:
        with self._session_factory() as session:
            self._apply_status(session, event_id, status, reason)
            session.commit()
        logger.debug(
            "raw_event_status_updated",
            extra={"raw_event_id": str(event_id), "status": status.value},
        )

    def insert_error(self, error: PipelineError, raw_event_id: UUID) -> None:
        with self._session_factory() as session:
            if session.get(RawEventModel, raw_event_id) is None:
                raise RawEventNotFoundError(str(raw_event_id))
            session.add(PipelineErrorModel.from_dto(error, raw_event_id))
            session.commit()

    def save_normalized_event(self, event: NormalizedEvent) -> None:
        with self._session_factory() as session:
            session.add(NormalizedEventModel.from_dto(event))
            session.commit()

    def save_processed(self, event: NormalizedEvent) -> None:
        with self._session_factory() as session:
            session.add(NormalizedEventModel.from_dto(event))
            self._apply_status(session, event.raw_event_id, ProcessingStatus.PROCESSED, None)
            # One commit for both rows; any failure above rolls both back on close
            session.commit()
        logger.debug(
            "raw_event_status_updated",
            extra={"raw_event_id": str(event.raw_event_id), "status": ProcessingStatus.PROCESSED.value},
        )

    def check_external_duplicate(self, fingerprint: str) -> bool:
        with self._session_factory() as session:
            found = session.execute(
                select(NormalizedEventModel.id)
                .where(NormalizedEventModel.fingerprint == fingerprint)
                .limit(1)
            ).first()
            return found is not None

    def get_raw_event(self, event_id: UUID) -> RawEvent:
        with self._session_factory() as session:
            row = session.get(RawEventModel, event_id)
            if row is None:
                raise RawEventNotFoundError(str(event_id))
            return row.to_dto()

    def get_errors(self, raw_event_id: UUID) -> list[PipelineError]:
        with self._session_factory() as session:
            rows = session.execute(
                select(PipelineErrorModel)
                .where(PipelineErrorModel.raw_event_id == raw_event_id)
                .order_by(PipelineErrorModel.created_at)
            ).scalars().all()
            return [row.to_dto() for row in rows]

    def get_normalized_event(self, raw_event_id: UUID) -> NormalizedEvent | None:
        with self._session_factory() as session:
            row = session.execute(
                select(NormalizedEventModel).where(NormalizedEventModel.raw_event_id == raw_event_id)
            ).scalar_one_or_none()
            return row.to_dto() if row is not None else None
