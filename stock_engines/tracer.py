"""
stock_engines.tracer -- STOCK_ENGINE_TRACE records for engine calls.

``@traced_engine`` wraps a pure engine method and logs, after every call,
which engine ran, how long it took, whether it raised, and a fingerprint
of the keyword arguments named in ``fingerprint_fields``.  Two plans for
the same product, quantity and tier share a fingerprint, which makes
retried ``plan_and_commit`` attempts easy to line up in the logs.

The fingerprint is the first 16 hex characters of a SHA-256 over a JSON
rendering of the selected arguments.  Decimals are normalised (``70.0``
and ``70`` hash alike), enums hash by value and dataclasses (lots, loads)
hash field by field.  Absent fields hash as ``null``.

Usage:
    @traced_engine("allocation", "1.0", fingerprint_fields=("quantity",))
    def plan(self, *, quantity, ...):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import json
import logging
import time
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from typing import Any

# Engines stay free of kernel infrastructure; the logger name alone places
# these records under the stock_kernel handler.
_logger = logging.getLogger("stock_kernel.engines.tracer")

TRACE_MESSAGE = "STOCK_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """Reduce a value to JSON-compatible data with a stable rendering."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    canonical = json.dumps(
        {name: _plain(kwargs.get(name)) for name in fingerprint_fields},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator emitting one STOCK_ENGINE_TRACE record per invocation."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields
                else ""
            )
            outcome = "error"
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.info(
                    TRACE_MESSAGE,
                    extra={
                        "trace_type": TRACE_MESSAGE,
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fingerprint,
                        "outcome": outcome,
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                        "function": func.__qualname__,
                    },
                )

        return wrapper

    return decorator
