"""Database layer - engine, session factory and declarative base classes."""

from finflow_kernel.db.base import Base, ExactDecimal, TimestampedBase, UUIDString
from finflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)

__all__ = [
    "Base",
    "ExactDecimal",
    "TimestampedBase",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
]
