"""
Configuration loader (``stock_config.loader``).

Responsibility
--------------
Loads the engine YAML file and parses it into ``stock_config.schema``
dataclasses.  Callers use ``stock_config.get_active_config()``; this
module is its implementation and test tooling.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys inside a section are
  rejected rather than ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed YAML for configuration identity.

Failure modes
-------------
* Missing YAML file -> ``FileNotFoundError`` propagates.
* Malformed YAML -> ``yaml.YAMLError`` propagates.
* Bad value -> ``InvalidConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    AllocationConfig,
    DatabaseConfig,
    EngineConfig,
    LoggingConfig,
)
from stock_kernel.domain.values import AllocationOrdering, ProductType
from stock_kernel.exceptions import InvalidConfigurationError

_SECTIONS = ("config_id", "version", "database", "allocation", "product_types", "logging")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidConfigurationError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; values in ``overrides`` win."""
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


def _section(data: Mapping[str, Any], name: str, allowed: tuple[str, ...]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise InvalidConfigurationError(name, "must be a mapping")
    unknown = sorted(set(section) - set(allowed))
    if unknown:
        raise InvalidConfigurationError(f"{name}.{unknown[0]}", "unknown key")
    return dict(section)


def parse_database(data: Mapping[str, Any]) -> DatabaseConfig:
    section = _section(
        data,
        "database",
        ("url", "echo", "pool_size", "max_overflow", "pool_timeout", "sqlite_timeout"),
    )
    return DatabaseConfig(**section)


def parse_allocation(data: Mapping[str, Any]) -> AllocationConfig:
    section = _section(data, "allocation", ("ordering", "max_commit_attempts"))
    if "ordering" in section:
        try:
            section["ordering"] = AllocationOrdering(section["ordering"])
        except ValueError:
            raise InvalidConfigurationError(
                "allocation.ordering",
                f"must be one of {', '.join(o.value for o in AllocationOrdering)}",
            ) from None
    return AllocationConfig(**section)


def parse_product_types(data: Mapping[str, Any]) -> frozenset[ProductType]:
    raw = data.get("product_types")
    if raw is None or raw == "all":
        return frozenset(ProductType)
    if not isinstance(raw, list):
        raise InvalidConfigurationError("product_types", "must be a list or 'all'")
    enabled = set()
    for value in raw:
        try:
            enabled.add(ProductType(value))
        except ValueError:
            raise InvalidConfigurationError(
                "product_types", f"unknown product type {value!r}"
            ) from None
    return frozenset(enabled)


def parse_logging(data: Mapping[str, Any]) -> LoggingConfig:
    section = _section(data, "logging", ("level",))
    if "level" in section:
        section["level"] = str(section["level"]).upper()
    return LoggingConfig(**section)


def parse_engine_config(data: Mapping[str, Any]) -> EngineConfig:
    """Parse a full configuration mapping into an EngineConfig."""
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise InvalidConfigurationError(unknown[0], "unknown configuration section")
    try:
        return EngineConfig(
            config_id=str(data.get("config_id", "default")),
            version=int(data.get("version", 1)),
            database=parse_database(data),
            allocation=parse_allocation(data),
            product_types=parse_product_types(data),
            logging=parse_logging(data),
            checksum=compute_checksum(data),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError("configuration", str(exc)) from exc
