"""
Source adapter protocol.

Contract:
    SourceAdapter.read() yields one payload dict per delivered record,
    streaming where the format allows it. Adapters do file I/O only: no DB,
    no pipeline imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable


@runtime_checkable
class SourceAdapter(Protocol):
    """Reads an uploaded transaction file into payload dicts."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        ...
