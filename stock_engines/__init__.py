"""
Module: stock_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines used by
    stock_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel/domain, stock_kernel/exceptions and
    stock_kernel/logging_config.  MUST NOT import stock_services or
    stock_config.

Invariants enforced:
    - Purity: engines never read the clock or the database.  Lots, loads
      and quantities are passed in.
    - Decimal-only arithmetic for weights and prices.
    - Determinism: identical inputs always produce identical outputs.
"""

from stock_engines.allocation import AllocationPlanner, order_lots
from stock_engines.reconciliation import (
    LineSettlement,
    LotRestoration,
    ReconciliationEngine,
    ReconciliationResult,
    RestorationAction,
    plan_restoration,
    report_lines,
)
from stock_engines.tracer import traced_engine

__all__ = [
    "AllocationPlanner",
    "order_lots",
    "LineSettlement",
    "LotRestoration",
    "ReconciliationEngine",
    "ReconciliationResult",
    "RestorationAction",
    "plan_restoration",
    "report_lines",
    "traced_engine",
]
