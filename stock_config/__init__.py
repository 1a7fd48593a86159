"""
stock_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits above ``stock_kernel`` and beside
    ``stock_services``.  The kernel MUST NEVER import from
    ``stock_config``; services receive the parsed ``EngineConfig``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Deterministic: the same YAML and overrides always produce the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``InvalidConfigurationError`` -- schema validation failed.

Audit relevance:
    Every successful call emits a ``STOCK_CONFIG_TRACE`` log entry with
    the config id, version, checksum, ordering and enabled product types.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from stock_config.loader import load_yaml_file, merge, parse_engine_config
from stock_config.schema import (
    AllocationConfig,
    DatabaseConfig,
    EngineConfig,
    LoggingConfig,
)

_logger = logging.getLogger("stock_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "engine.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            stock_config/defaults/engine.yaml.
        overrides: Nested mapping merged over the file contents
            (e.g. ``{"database": {"url": "sqlite://"}}``).

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidConfigurationError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)
    if overrides:
        data = merge(data, overrides)

    config = parse_engine_config(data)

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "ordering": config.allocation.ordering.value,
            "product_type_count": len(config.product_types),
        },
    )
    return config


__all__ = [
    "get_active_config",
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "DatabaseConfig",
    "AllocationConfig",
    "LoggingConfig",
]
