"""
Stable identifiers for validated records.

Two helpers shared by the validator and the deduplicator:

* ``synthesize_record_id`` -- id for payloads without a natural id, hashed
  from (amount, timestamp, source) so identical retried payloads get the
  same id before deduplication runs.
* ``compute_fingerprint`` -- the deduplication key. ``ext:<source>:<id>``
  when the source supplied an id, both parts percent-encoded so a ``:``
  inside either cannot collide with the separator; otherwise a hash of
  (amount to 2 places, timestamp, source, type, category).

Hashes are SHA-256 over a canonical, ``|``-joined string. ZERO I/O.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, localcontext
from urllib.parse import quote

from finflow_ingestion.domain.types import ValidatedRecord

_CENTS = Decimal("0.01")


def canonical_amount(amount: Decimal) -> str:
    """Plain-notation amount with trailing zeros removed (100.00 -> '100')."""
    with localcontext() as ctx:
        ctx.prec = 60
        normalized = amount.normalize()
    if normalized == 0:
        return "0"
    return format(normalized, "f")


def canonical_timestamp(timestamp: datetime) -> str:
    """UTC ISO-8601 rendering; naive datetimes are taken as UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat()


def _digest(parts: list[str]) -> str:
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def synthesize_record_id(amount: Decimal, timestamp: datetime, source: str) -> str:
    """Deterministic record id for payloads that carry no natural id."""
    digest = _digest([canonical_amount(amount), canonical_timestamp(timestamp), source])
    return f"rec_{digest[:24]}"


def compute_fingerprint(record: ValidatedRecord) -> str:
    """Deduplication key for a validated record."""
    if record.external_id:
        return f"ext:{quote(record.source, safe='')}:{quote(record.external_id, safe='')}"
    with localcontext() as ctx:
        ctx.prec = 60
        amount = record.amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
    digest = _digest(
        [
            format(amount, "f"),
            canonical_timestamp(record.timestamp),
            record.source,
            (record.record_type or "").lower(),
            (record.category or "").lower(),
        ]
    )
    return f"sha256:{digest}"
