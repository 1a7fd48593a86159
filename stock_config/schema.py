"""
Configuration schema (``stock_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the engine configuration: database
connection, allocation policy, enabled product types and logging level.
Each section validates itself in ``__post_init__``.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Imports only the kernel's
value vocabulary and exceptions; the kernel never imports this module.

Invariants enforced
-------------------
* Every dataclass is ``frozen=True``.
* Invalid values raise ``InvalidConfigurationError`` naming the key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from stock_kernel.domain.values import AllocationOrdering, ProductType
from stock_kernel.exceptions import InvalidConfigurationError

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///stock.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_timeout: float = 5.0

    def __post_init__(self) -> None:
        if not self.url:
            raise InvalidConfigurationError("database.url", "must not be empty")
        for name in ("pool_size", "pool_timeout"):
            if getattr(self, name) < 1:
                raise InvalidConfigurationError(f"database.{name}", "must be at least 1")
        if self.max_overflow < 0:
            raise InvalidConfigurationError("database.max_overflow", "cannot be negative")
        if self.sqlite_timeout <= 0:
            raise InvalidConfigurationError("database.sqlite_timeout", "must be positive")


@dataclass(frozen=True)
class AllocationConfig:
    """How lots are chosen and how often a conflicted commit is replanned."""

    ordering: AllocationOrdering = AllocationOrdering.OLDEST_FIRST
    max_commit_attempts: int = 3

    def __post_init__(self) -> None:
        if self.max_commit_attempts < 1:
            raise InvalidConfigurationError(
                "allocation.max_commit_attempts", "must be at least 1"
            )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level not in _LOG_LEVELS:
            raise InvalidConfigurationError(
                "logging.level", f"must be one of {', '.join(_LOG_LEVELS)}"
            )

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level)


@dataclass(frozen=True)
class EngineConfig:
    """The complete, validated engine configuration."""

    config_id: str = "default"
    version: int = 1
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    allocation: AllocationConfig = field(default_factory=AllocationConfig)
    product_types: frozenset[ProductType] = frozenset(ProductType)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.product_types:
            raise InvalidConfigurationError(
                "product_types", "at least one product type must be enabled"
            )

    def is_enabled(self, product_type: ProductType) -> bool:
        return product_type in self.product_types
