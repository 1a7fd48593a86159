"""
Data Transfer Objects for the stock kernel.

Responsibility:
    Frozen value objects passed between the engines, services and callers:
    lots, price tiers, allocation plans, loads, ledger deltas, stock totals
    and load reports.  ORM rows never leave the kernel; these do.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - AllocationPlan: sum of weight_used == quantity (exact allocation).
    - LoadLine: sum of lots_used.weight_used == quantity.
    - LoadReportLine: loaded == remaining + sold.
    - Persisted line payloads (JSON) carry decimals as strings so no
      precision is lost to float.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from stock_kernel.domain.values import (
    ZERO,
    AllocationOrdering,
    LedgerField,
    LoadStatus,
    LotStatus,
    ProductType,
    price_key,
)


# =============================================================================
# Tenant
# =============================================================================


@dataclass(frozen=True)
class TenantContext:
    """Explicit tenant for every engine call: which business, which operator."""

    business_id: UUID
    actor_id: UUID


@dataclass(frozen=True)
class Assignee:
    """Sales representative a load is handed to."""

    assignee_id: str
    name: str = ""


# =============================================================================
# Lots and tiers
# =============================================================================


@dataclass(frozen=True)
class Lot:
    """One physical bag of product."""

    lot_id: UUID
    business_id: UUID
    product_type: ProductType
    weight: Decimal
    price: Decimal
    status: LotStatus
    created_at: datetime
    version: int = 1
    parent_lot_id: UUID | None = None
    load_id: UUID | None = None
    assignee_id: str | None = None


@dataclass(frozen=True)
class PriceTier:
    """Available lots of one product type sharing one price point."""

    product_type: ProductType
    price: Decimal
    lots: tuple[Lot, ...]

    @property
    def tier_id(self) -> str:
        return tier_id_for(self.product_type, self.price)

    @property
    def total_weight(self) -> Decimal:
        return sum((lot.weight for lot in self.lots), ZERO)

    @property
    def lot_count(self) -> int:
        return len(self.lots)


def tier_id_for(product_type: ProductType, price: Decimal) -> str:
    """``"<product_type>@<price>"``, e.g. ``"rice@100"``."""
    return f"{product_type.value}@{price_key(price)}"


@dataclass(frozen=True)
class PlannedLotUse:
    """How much of one lot a plan consumes, and the lot state it assumed."""

    lot_id: UUID
    lot_weight: Decimal
    weight_used: Decimal
    expected_version: int

    @property
    def is_partial(self) -> bool:
        return self.weight_used < self.lot_weight

    @property
    def residual_weight(self) -> Decimal:
        return self.lot_weight - self.weight_used


@dataclass(frozen=True)
class AllocationPlan:
    """
    Lots selected to satisfy one product type's requested quantity.

    Guarantees:
        - ``uses`` are in consumption order.
        - Weights used sum exactly to ``quantity``.
        - At most the last use is partial.
    """

    business_id: UUID
    product_type: ProductType
    price: Decimal
    quantity: Decimal
    ordering: AllocationOrdering
    uses: tuple[PlannedLotUse, ...]

    def __post_init__(self) -> None:
        used = sum((u.weight_used for u in self.uses), ZERO)
        if used != self.quantity:
            raise ValueError(
                f"Allocation plan weights {used} do not sum to quantity {self.quantity}"
            )
        if any(u.is_partial for u in self.uses[:-1]):
            raise ValueError("Only the last lot of a plan may be partially consumed")

    @property
    def tier_id(self) -> str:
        return tier_id_for(self.product_type, self.price)

    @property
    def lots_consumed(self) -> int:
        return len(self.uses)

    @property
    def total_value(self) -> Decimal:
        return self.quantity * self.price

    @property
    def partial_use(self) -> PlannedLotUse | None:
        if self.uses and self.uses[-1].is_partial:
            return self.uses[-1]
        return None


@dataclass(frozen=True)
class AllocationRequest:
    """Input to plan-and-commit: what the operator asked for."""

    product_type: ProductType
    quantity: Decimal
    price_tier: Decimal | str | None = None


# =============================================================================
# Loads
# =============================================================================


@dataclass(frozen=True)
class LotUse:
    """A lot recorded on a load line."""

    lot_id: UUID
    weight_used: Decimal
    price_per_unit: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "lot_id": str(self.lot_id),
            "weight_used": str(self.weight_used),
            "price_per_unit": str(self.price_per_unit),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LotUse:
        return cls(
            lot_id=UUID(data["lot_id"]),
            weight_used=Decimal(data["weight_used"]),
            price_per_unit=Decimal(data["price_per_unit"]),
        )


@dataclass(frozen=True)
class LoadLine:
    """One product type on a load."""

    line_key: str
    product_type: ProductType
    quantity: Decimal
    price_per_unit: Decimal
    total_value: Decimal
    lots_used: tuple[LotUse, ...]

    def __post_init__(self) -> None:
        used = sum((u.weight_used for u in self.lots_used), ZERO)
        if used != self.quantity:
            raise ValueError(
                f"Load line {self.line_key}: lots used {used} != quantity {self.quantity}"
            )

    @classmethod
    def from_plan(cls, plan: AllocationPlan) -> LoadLine:
        return cls(
            line_key=plan.product_type.value,
            product_type=plan.product_type,
            quantity=plan.quantity,
            price_per_unit=plan.price,
            total_value=plan.total_value,
            lots_used=tuple(
                LotUse(u.lot_id, u.weight_used, plan.price) for u in plan.uses
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_key": self.line_key,
            "product_type": self.product_type.value,
            "quantity": str(self.quantity),
            "price_per_unit": str(self.price_per_unit),
            "total_value": str(self.total_value),
            "lots_used": [u.to_dict() for u in self.lots_used],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LoadLine:
        return cls(
            line_key=data["line_key"],
            product_type=ProductType(data["product_type"]),
            quantity=Decimal(data["quantity"]),
            price_per_unit=Decimal(data["price_per_unit"]),
            total_value=Decimal(data["total_value"]),
            lots_used=tuple(LotUse.from_dict(u) for u in data["lots_used"]),
        )


@dataclass(frozen=True)
class Load:
    """A committed allocation of lots awaiting reconciliation."""

    load_id: UUID
    business_id: UUID
    lines: tuple[LoadLine, ...]
    total_weight: Decimal
    total_value: Decimal
    total_lots: int
    status: LoadStatus
    assignee: Assignee
    notes: str
    created_at: datetime
    created_by_id: UUID

    def line(self, line_key: str) -> LoadLine | None:
        for line in self.lines:
            if line.line_key == line_key:
                return line
        return None


# =============================================================================
# Ledger
# =============================================================================


@dataclass(frozen=True)
class StockDelta:
    """
    Signed change to one product type's stock totals.

    Deltas add; the ledger applies them as ``field = field + delta`` so
    concurrent operations never overwrite each other.
    """

    bagged_total: Decimal = ZERO
    bagged_bag_count: int = 0
    loaded_total: Decimal = ZERO
    loaded_bag_count: int = 0
    sold_total: Decimal = ZERO
    sold_value: Decimal = ZERO

    def __add__(self, other: StockDelta) -> StockDelta:
        if not isinstance(other, StockDelta):
            return NotImplemented
        return StockDelta(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def items(self) -> Iterator[tuple[LedgerField, Decimal | int]]:
        """Non-zero components, keyed by ledger field."""
        for f in fields(self):
            value = getattr(self, f.name)
            if value:
                yield LedgerField(f.name), value

    @property
    def is_zero(self) -> bool:
        return not any(True for _ in self.items())

    @property
    def conserved_change(self) -> Decimal:
        """Change in bagged + loaded + sold weight.  Zero for allocate/reconcile."""
        return self.bagged_total + self.loaded_total + self.sold_total


@dataclass(frozen=True)
class StockTotals:
    """Aggregate stock ledger row for one product type."""

    business_id: UUID
    product_type: ProductType
    bagged_total: Decimal = ZERO
    bagged_bag_count: int = 0
    loaded_total: Decimal = ZERO
    loaded_bag_count: int = 0
    sold_total: Decimal = ZERO
    sold_value: Decimal = ZERO
    last_updated: datetime | None = None

    @property
    def conserved_total(self) -> Decimal:
        return self.bagged_total + self.loaded_total + self.sold_total


# =============================================================================
# Reconciliation
# =============================================================================


@dataclass(frozen=True)
class LoadReportLine:
    """Sold/remaining split for one load line."""

    line_key: str
    product_type: ProductType
    loaded_quantity: Decimal
    remaining_quantity: Decimal
    sold_quantity: Decimal
    price_per_unit: Decimal
    sold_value: Decimal
    lots_used: tuple[LotUse, ...]
    restored_lots: tuple[UUID, ...] = ()

    def __post_init__(self) -> None:
        if self.remaining_quantity + self.sold_quantity != self.loaded_quantity:
            raise ValueError(
                f"Report line {self.line_key}: remaining + sold != loaded"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "line_key": self.line_key,
            "product_type": self.product_type.value,
            "loaded_quantity": str(self.loaded_quantity),
            "remaining_quantity": str(self.remaining_quantity),
            "sold_quantity": str(self.sold_quantity),
            "price_per_unit": str(self.price_per_unit),
            "sold_value": str(self.sold_value),
            "lots_used": [u.to_dict() for u in self.lots_used],
            "restored_lots": [str(lot_id) for lot_id in self.restored_lots],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LoadReportLine:
        return cls(
            line_key=data["line_key"],
            product_type=ProductType(data["product_type"]),
            loaded_quantity=Decimal(data["loaded_quantity"]),
            remaining_quantity=Decimal(data["remaining_quantity"]),
            sold_quantity=Decimal(data["sold_quantity"]),
            price_per_unit=Decimal(data["price_per_unit"]),
            sold_value=Decimal(data["sold_value"]),
            lots_used=tuple(LotUse.from_dict(u) for u in data["lots_used"]),
            restored_lots=tuple(UUID(x) for x in data.get("restored_lots", ())),
        )


@dataclass(frozen=True)
class LoadReport:
    """Immutable record of a reconciled load."""

    report_id: UUID
    business_id: UUID
    load_id: UUID
    assignee: Assignee
    lines: tuple[LoadReportLine, ...]
    total_loaded_quantity: Decimal
    total_loaded_value: Decimal
    total_remaining_quantity: Decimal
    total_sold_quantity: Decimal
    total_sold_value: Decimal
    loaded_at: datetime
    reconciled_at: datetime
    created_by_id: UUID
    notes: str = ""

    def line(self, line_key: str) -> LoadReportLine | None:
        for line in self.lines:
            if line.line_key == line_key:
                return line
        return None


@dataclass(frozen=True)
class StockDiscrepancy:
    """A ledger field that disagrees with the lots it summarises."""

    product_type: ProductType
    field: LedgerField
    ledger_value: Decimal
    lot_value: Decimal


@dataclass(frozen=True)
class StockAuditResult:
    """Outcome of comparing the ledger against lot sums."""

    business_id: UUID
    checked: tuple[ProductType, ...]
    discrepancies: tuple[StockDiscrepancy, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.discrepancies
