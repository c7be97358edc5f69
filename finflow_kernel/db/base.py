"""
Declarative base shared by every finflow ORM model.

Column types are chosen from Python annotations through
``Base.type_annotation_map``: money is ``ExactDecimal`` and never float,
datetimes are timezone-aware, UUIDs are stored as 36-character strings so
SQLite and PostgreSQL behave the same.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        return None if value is None else str(value)

    def process_result_value(self, value: Any, dialect: Any) -> uuid.UUID | None:
        return None if value is None else uuid.UUID(value)


class ExactDecimal(TypeDecorator):
    """
    ``Decimal`` column that never round-trips through float.

    ``NUMERIC(38, 9)`` where the database has a real decimal type. SQLite
    keeps NUMERIC values as 8-byte floats, so there the value is stored as
    its decimal text instead.
    """

    impl = Numeric(38, 9)
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(38, 9, asdecimal=True))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None or dialect.name != "sqlite":
            return value
        return format(Decimal(value), "f")

    def process_result_value(self, value: Any, dialect: Any) -> Decimal | None:
        if value is None:
            return None
        return value if isinstance(value, Decimal) else Decimal(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: ExactDecimal(),
        datetime: DateTime(timezone=True),
        uuid.UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


class TimestampedBase(Base):
    """Adds ``created_at``/``updated_at`` row bookkeeping, filled by the database."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
