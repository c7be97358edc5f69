"""
JSON and JSON Lines uploads.

A ``.json`` document may be a list, an enveloped list or a single object
(see ``unwrap_payloads``). ``.jsonl``/``.ndjson`` files hold one document per
line. Options: ``format`` ("json" or "jsonl", overrides the suffix),
``json_path`` to reach records nested deeper (e.g. "result.items"), and
``encoding``. Keys are kept as delivered since aliases like ``createdAt`` are
case-sensitive.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from finflow_ingestion.adapters.envelope import unwrap_payloads

_LINE_SUFFIXES = (".jsonl", ".ndjson")
_MISSING = object()


def _descend(document: Any, json_path: str) -> Any:
    """Walk dotted keys (list positions as integers). ``_MISSING`` when a step fails."""
    node = document
    for step in filter(None, (part.strip() for part in json_path.split("."))):
        if isinstance(node, dict):
            node = node.get(step, _MISSING)
        elif isinstance(node, list) and step.lstrip("-").isdigit() and -len(node) <= int(step) < len(node):
            node = node[int(step)]
        else:
            return _MISSING
        if node is _MISSING:
            return _MISSING
    return node


def _is_json_lines(source_path: Path, options: dict[str, Any]) -> bool:
    declared = options.get("format")
    if declared:
        return str(declared).lower() == "jsonl"
    return source_path.suffix.lower() in _LINE_SUFFIXES


class JsonSourceAdapter:
    """One payload per JSON record."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        encoding = options.get("encoding", "utf-8")
        with source_path.open(encoding=encoding) as handle:
            if _is_json_lines(source_path, options):
                for text in handle:
                    if text.strip():
                        yield from unwrap_payloads(json.loads(text))
                return
            document = json.load(handle)

        if options.get("json_path"):
            document = _descend(document, options["json_path"])
            if document is _MISSING or document is None:
                return
        yield from unwrap_payloads(document)
