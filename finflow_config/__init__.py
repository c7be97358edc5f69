"""
finflow_config -- single public entrypoint for pipeline configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way runtime code obtains
    configuration. YAML loading is internal tooling and never exposed to the
    pipeline stages, which receive the frozen ``PipelineConfig`` by
    injection.

Invariants enforced:
    - Every returned config has passed ``validate_configuration``.
    - Same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- config file does not exist.
    - ``ConfigurationError`` -- parse or validation failures (all listed).

Audit relevance:
    Every successful call emits a ``FINFLOW_CONFIG_TRACE`` log entry with the
    config id, version, checksum, base currency and rate count, tying every
    normalized event to the configuration that converted it.
"""

from __future__ import annotations

from pathlib import Path

from finflow_config.loader import load_yaml_file, parse_pipeline_config
from finflow_config.schema import PipelineConfig, RoundingMode
from finflow_config.validator import ConfigValidationResult, validate_configuration
from finflow_kernel.exceptions import ConfigurationError
from finflow_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> PipelineConfig:
    """Load, validate and return the pipeline configuration.

    Args:
        config_path: Override path to a YAML config file. Defaults to
            ``finflow_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file cannot be parsed or fails validation.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)
    try:
        config = parse_pipeline_config(data)
    except (KeyError, ValueError, TypeError) as exc:
        raise ConfigurationError([f"unparseable config: {exc}"], source=str(path)) from exc

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ConfigurationError(validation.errors, source=str(path))

    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"detail": warning})

    _logger.info(
        "FINFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "FINFLOW_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "base_currency": config.base_currency,
            "rate_count": len(config.exchange_rates),
            "rounding": config.rounding.value,
        },
    )
    return config


__all__ = [
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "PipelineConfig",
    "RoundingMode",
    "get_active_config",
    "validate_configuration",
]
