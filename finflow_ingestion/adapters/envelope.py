"""
Envelope unwrapping for delivered documents.

A delivery body may be a bare list of payloads, an object wrapping the list
under one of ``ENVELOPE_KEYS``, or a single payload. Items are yielded as
they are, objects or not: the validator rejects non-object payloads with
their own terminal status instead of having them vanish here.
"""

from __future__ import annotations

from typing import Any, Iterator

ENVELOPE_KEYS = ("transactions", "data", "records")


def unwrap_payloads(document: Any) -> Iterator[Any]:
    """Yield the payloads carried by ``document``."""
    if isinstance(document, (list, tuple)):
        yield from document
        return
    if isinstance(document, dict):
        for key in ENVELOPE_KEYS:
            if isinstance(document.get(key), list):
                yield from document[key]
                return
    yield document
