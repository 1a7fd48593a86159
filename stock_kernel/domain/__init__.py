"""Pure domain layer of the stock kernel: values, DTOs and clocks."""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    AllocationPlan,
    AllocationRequest,
    Assignee,
    Load,
    LoadLine,
    LoadReport,
    LoadReportLine,
    Lot,
    LotUse,
    PlannedLotUse,
    PriceTier,
    StockAuditResult,
    StockDelta,
    StockDiscrepancy,
    StockTotals,
    TenantContext,
    tier_id_for,
)
from stock_kernel.domain.values import (
    ZERO,
    AllocationOrdering,
    LedgerField,
    LoadStatus,
    LotStatus,
    ProductType,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "AllocationPlan",
    "AllocationRequest",
    "Assignee",
    "Load",
    "LoadLine",
    "LoadReport",
    "LoadReportLine",
    "Lot",
    "LotUse",
    "PlannedLotUse",
    "PriceTier",
    "StockAuditResult",
    "StockDelta",
    "StockDiscrepancy",
    "StockTotals",
    "TenantContext",
    "tier_id_for",
    "ZERO",
    "AllocationOrdering",
    "LedgerField",
    "LoadStatus",
    "LotStatus",
    "ProductType",
]
