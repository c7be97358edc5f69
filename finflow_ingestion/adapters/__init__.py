"""Source adapters for uploaded files (file I/O only, no DB)."""

from pathlib import Path

from finflow_ingestion.adapters.base import SourceAdapter
from finflow_ingestion.adapters.csv_adapter import CsvSourceAdapter
from finflow_ingestion.adapters.envelope import ENVELOPE_KEYS, unwrap_payloads
from finflow_ingestion.adapters.json_adapter import JsonSourceAdapter

ADAPTERS_BY_SUFFIX: dict[str, SourceAdapter] = {
    ".json": JsonSourceAdapter(),
    ".jsonl": JsonSourceAdapter(),
    ".ndjson": JsonSourceAdapter(),
    ".csv": CsvSourceAdapter(),
}


def adapter_for_path(source_path: Path) -> SourceAdapter:
    """Pick the adapter for a file by suffix. Raises ValueError for unsupported files."""
    adapter = ADAPTERS_BY_SUFFIX.get(source_path.suffix.lower())
    if adapter is None:
        supported = ", ".join(sorted(ADAPTERS_BY_SUFFIX))
        raise ValueError(f"Unsupported file type {source_path.suffix!r} (supported: {supported})")
    return adapter


__all__ = [
    "ADAPTERS_BY_SUFFIX",
    "ENVELOPE_KEYS",
    "CsvSourceAdapter",
    "JsonSourceAdapter",
    "SourceAdapter",
    "adapter_for_path",
    "unwrap_payloads",
]
