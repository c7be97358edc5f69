"""
CSV uploads, one payload per data row.

Options: ``delimiter`` (default ","), ``encoding``, ``skip_rows`` (lines
before the header) and ``quoting`` ("minimal", "all", "none" or a csv
constant). A UTF-8 byte order mark is dropped. Headers and cells are
trimmed; empty cells are left out so that a blank ``amount`` column lets the
validator fall through to the next amount alias.
"""

from __future__ import annotations

import csv
from itertools import islice
from pathlib import Path
from typing import Any, Iterator



def _encoding(options: dict[str, Any]) -> str:
    requested = options.get("encoding", "utf-8")
    return "utf-8-sig" if requested.lower().replace("_", "-") in ("utf-8", "utf8") else requested


def _quoting(options: dict[str, Any]) -> int:
    mode = options.get("quoting", "minimal")
    if isinstance(mode, int):
        return mode
    return getattr(csv, f"QUOTE_{str(mode).upper()}", csv.QUOTE_MINIMAL)


def _payload(row: dict[str | None, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for header, cell in row.items():
        # None collects cells beyond the header width
        if header is None or not header.strip():
            continue
        if isinstance(cell, str):
            cell = cell.strip()
        if cell:
            payload[header.strip()] = cell
    return payload


class CsvSourceAdapter:
    """Streams rows through ``csv.DictReader``."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        with source_path.open(encoding=_encoding(options), newline="") as handle:
            lines = islice(handle, int(options.get("skip_rows", 0)), None)
            rows = csv.DictReader(lines, delimiter=options.get("delimiter", ","), quoting=_quoting(options))
            for row in rows:
                payload = _payload(row)
                if payload:
                    yield payload
