"""
Configuration Loader (``finflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a
``finflow_config.schema.PipelineConfig``. Callers outside this package go
through ``finflow_config.get_active_config()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``pipeline`` section or required keys  -> ``KeyError`` propagates.
* Unparseable rate or rounding mode  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from finflow_config.schema import PipelineConfig, RoundingMode


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Parsed YAML mapping; an empty file gives an empty dict."""
    with Path(path).open(encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def parse_rate(code: str, value: Any) -> Decimal:
    """Parse one exchange-rate multiplier. Strings are preferred in YAML to avoid float drift."""
    if isinstance(value, bool):
        raise ValueError(f"Exchange rate for {code} must be a number, got {value!r}")
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Exchange rate for {code} is not a number: {value!r}") from exc


def _code_set(values: Any) -> frozenset[str]:
    return frozenset(str(v).strip().upper() for v in (values or ()))


def _name_set(values: Any) -> frozenset[str]:
    return frozenset(str(v).strip().lower() for v in (values or ()))


def parse_pipeline_config(data: dict[str, Any]) -> PipelineConfig:
    """Parse a ``PipelineConfig`` from the top-level YAML dict."""
    pipeline = data["pipeline"]
    rates = {
        str(code).strip().upper(): parse_rate(str(code), value)
        for code, value in (pipeline.get("exchange_rates") or {}).items()
    }
    return PipelineConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        workspace_id=str(pipeline["workspace_id"]),
        base_currency=str(pipeline["base_currency"]).strip().upper(),
        exchange_rates=rates,
        known_currencies=_code_set(pipeline["known_currencies"]),
        known_sources=_name_set(pipeline.get("known_sources")),
        sale_types=_name_set(pipeline.get("sale_types", ["sale"])),
        base_amount_places=int(pipeline.get("base_amount_places", 4)),
        rounding=RoundingMode(str(pipeline.get("rounding", "half_up")).lower()),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 over key-sorted JSON, so the same mapping always hashes the same."""
    encoded = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()

