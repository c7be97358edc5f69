"""
Process-wide engine and session factory.

Call ``init_engine_from_url`` once at startup. Stores receive the session
factory, not a session, so every store call and every batch worker thread
opens its own short-lived session.

An in-memory SQLite URL gets a ``StaticPool``: all sessions share the one
connection, otherwise each would see an empty database.
"""

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from finflow_kernel.db.base import Base
from finflow_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _engine_options(backend: str, pool_size: int, pool_recycle: int) -> dict[str, Any]:
    if backend == "sqlite":
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {
        "pool_size": pool_size,
        "max_overflow": pool_size // 2,
        "pool_pre_ping": True,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Args:
        database_url: Any SQLAlchemy URL, e.g. ``sqlite:///:memory:`` or
            ``postgresql+psycopg://...``.
        echo: Log every SQL statement.
        pool_size: Pooled connections for server backends. Ignored for SQLite.
        pool_recycle: Seconds before a pooled connection is replaced.
    """
    global _engine, _session_factory

    reset_engine()
    backend = make_url(database_url).get_backend_name()
    _engine = create_engine(database_url, echo=echo, **_engine_options(backend, pool_size, pool_recycle))
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info("engine_initialized", extra={"backend": backend, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first")
    return _session_factory


def create_tables() -> None:
    """Create every table on ``Base.metadata``. Import ``finflow_ingestion.models`` first."""
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
