"""
Seen-set storage for deduplication.

The seen-set is keyed by fingerprint and records when a fingerprint was first
seen and how many times it has been marked. It starts empty and only grows,
except for ``release`` (undoing the claim of a run that failed) and an
explicit ``clear()``.

``claim`` is the atomic check-and-set every pipeline run goes through: the
first caller for a fingerprint gets True, every later caller gets False and
bumps the occurrence count. Services in one process or in many that share a
store therefore accept each fingerprint at most once.

Implementations:
    InMemorySeenStore -- lock-guarded dict; process lifetime.
    SqlSeenStore      -- ``seen_fingerprints`` table; the unique constraint
                         on ``fingerprint`` decides concurrent claims.

Both are injected into ``Deduplicator``; there is no module-level instance.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol, runtime_checkable

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from finflow_ingestion.models.staging import SeenFingerprintModel
from finflow_kernel.logging_config import get_logger

logger = get_logger("ingestion.dedup.store")


@dataclass(frozen=True)
class SeenEntry:
    """A fingerprint's seen-set record. occurrences counts every mark, the first included."""

    fingerprint: str
    first_seen_at: datetime
    occurrences: int = 1


@runtime_checkable
class SeenStore(Protocol):
    """Fingerprint -> SeenEntry map shared by every pipeline run."""

    def get(self, fingerprint: str) -> SeenEntry | None:
        ...

    def contains(self, fingerprint: str) -> bool:
        ...

    def claim(self, fingerprint: str, seen_at: datetime) -> bool:
        """Insert the fingerprint if absent and return True; otherwise count the sighting and return False."""
        ...

    def release(self, fingerprint: str) -> None:
        """Forget a claimed fingerprint so a later run can claim it again."""
        ...

    def add(self, fingerprint: str, seen_at: datetime) -> SeenEntry:
        """Insert a new entry, or increment occurrences of an existing one."""
        ...

    def clear(self) -> None:
        ...

    def entries(self) -> list[SeenEntry]:
        ...

    def __len__(self) -> int:
        ...


class InMemorySeenStore:
    """Thread-safe in-process seen-set."""

    def __init__(self) -> None:
        self._entries: dict[str, SeenEntry] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> SeenEntry | None:
        with self._lock:
            return self._entries.get(fingerprint)

    def contains(self, fingerprint: str) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def claim(self, fingerprint: str, seen_at: datetime) -> bool:
        with self._lock:
            existing = self._entries.get(fingerprint)
            if existing is None:
                self._entries[fingerprint] = SeenEntry(fingerprint=fingerprint, first_seen_at=seen_at)
                return True
            self._entries[fingerprint] = replace(existing, occurrences=existing.occurrences + 1)
            return False

    def release(self, fingerprint: str) -> None:
        with self._lock:
            self._entries.pop(fingerprint, None)

    def add(self, fingerprint: str, seen_at: datetime) -> SeenEntry:
        with self._lock:
            existing = self._entries.get(fingerprint)
            if existing is None:
                entry = SeenEntry(fingerprint=fingerprint, first_seen_at=seen_at)
            else:
                entry = replace(existing, occurrences=existing.occurrences + 1)
            self._entries[fingerprint] = entry
            return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def entries(self) -> list[SeenEntry]:
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SqlSeenStore:
    """
    Durable seen-set on the ``seen_fingerprints`` table.

    One short transaction per call. A first insert that loses the race on
    the unique constraint is turned into an occurrence increment, so the
    database alone decides which claim wins, across processes too.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _find(self, session: Session, fingerprint: str) -> SeenFingerprintModel | None:
        return session.execute(
            select(SeenFingerprintModel).where(SeenFingerprintModel.fingerprint == fingerprint)
        ).scalar_one_or_none()

    def _increment(self, session: Session, fingerprint: str) -> None:
        session.execute(
            update(SeenFingerprintModel)
            .where(SeenFingerprintModel.fingerprint == fingerprint)
            .values(occurrences=SeenFingerprintModel.occurrences + 1)
        )
        session.commit()

    def get(self, fingerprint: str) -> SeenEntry | None:
        with self._session_factory() as session:
            row = self._find(session, fingerprint)
            return row.to_dto() if row is not None else None

    def contains(self, fingerprint: str) -> bool:
        return self.get(fingerprint) is not None

    def claim(self, fingerprint: str, seen_at: datetime) -> bool:
        with self._session_factory() as session:
            if self._find(session, fingerprint) is not None:
                self._increment(session, fingerprint)
                return False
            session.add(SeenFingerprintModel(fingerprint=fingerprint, first_seen_at=seen_at, occurrences=1))
            try:
                session.commit()
                return True
            except IntegrityError:
                session.rollback()
                logger.debug("seen_fingerprint_claim_lost", extra={"fingerprint": fingerprint})
                self._increment(session, fingerprint)
                return False

    def release(self, fingerprint: str) -> None:
        with self._session_factory() as session:
            session.execute(delete(SeenFingerprintModel).where(SeenFingerprintModel.fingerprint == fingerprint))
            session.commit()

    def add(self, fingerprint: str, seen_at: datetime) -> SeenEntry:
        self.claim(fingerprint, seen_at)
        entry = self.get(fingerprint)
        assert entry is not None
        return entry

    def clear(self) -> None:
        with self._session_factory() as session:
            session.execute(delete(SeenFingerprintModel))
            session.commit()

    def entries(self) -> list[SeenEntry]:
        with self._session_factory() as session:
            rows = session.execute(select(SeenFingerprintModel)).scalars().all()
            return [row.to_dto() for row in rows]

    def __len__(self) -> int:
        with self._session_factory() as session:
            return session.execute(select(func.count(SeenFingerprintModel.id))).scalar_one()
