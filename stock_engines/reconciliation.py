"""
Module: stock_engines.reconciliation
Responsibility:
    Settle a returned load: validate the remaining quantity reported for
    each line, split each line into sold and remaining weight, decide which
    lots go back to available stock, and compute the ledger deltas.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import stock_kernel/domain and stock_kernel/exceptions.

Invariants enforced:
    - Per line: remaining + sold == loaded, 0 <= remaining <= loaded.
    - Weight-exact restoration: lots are walked in reverse consumption order
      and exactly ``remaining`` weight is returned to available; the lot
      straddling the boundary is split.
    - Conservation: for every product type the deltas satisfy
      bagged + loaded + sold == 0.

Failure modes:
    - UnknownLoadLineError when a remaining quantity names a line the load
      does not have.
    - MissingRemainingQuantityError when a line has no remaining quantity.
    - InvalidRemainingQuantityError when a remaining quantity is not a
      number, negative, or above the loaded quantity.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_engines.tracer import traced_engine
from stock_kernel.domain.dtos import Load, LoadLine, LoadReportLine, LotUse, StockDelta
from stock_kernel.domain.values import ZERO, ProductType, to_decimal
from stock_kernel.exceptions import (
    InvalidQuantityError,
    InvalidRemainingQuantityError,
    MissingRemainingQuantityError,
    UnknownLoadLineError,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


class RestorationAction(str, Enum):
    """What happens to one loaded lot at reconciliation."""

    RESTORE = "restore"  # whole lot back to available
    SPLIT = "split"  # sold part stays, restored part becomes a new lot
    SELL = "sell"  # whole lot sold


@dataclass(frozen=True)
class LotRestoration:
    lot_id: UUID
    action: RestorationAction
    restored_weight: Decimal
    sold_weight: Decimal


@dataclass(frozen=True)
class LineSettlement:
    """Sold / remaining split of one load line and what happens to its lots."""

    line: LoadLine
    remaining: Decimal
    sold: Decimal
    sold_value: Decimal
    restorations: tuple[LotRestoration, ...]

    @property
    def lots_returned(self) -> int:
        """Lots that come back to available stock (whole or split child)."""
        return sum(
            1 for r in self.restorations if r.action is not RestorationAction.SELL
        )

    @property
    def delta(self) -> StockDelta:
        return StockDelta(
            bagged_total=self.remaining,
            bagged_bag_count=self.lots_returned,
            loaded_total=-self.line.quantity,
            loaded_bag_count=-len(self.line.lots_used),
            sold_total=self.sold,
            sold_value=self.sold_value,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    settlements: tuple[LineSettlement, ...]

    @property
    def deltas(self) -> dict[ProductType, StockDelta]:
        result: dict[ProductType, StockDelta] = {}
        for s in self.settlements:
            product_type = s.line.product_type
            result[product_type] = result.get(product_type, StockDelta()) + s.delta
        return result

    @property
    def total_loaded_quantity(self) -> Decimal:
        return sum((s.line.quantity for s in self.settlements), ZERO)

    @property
    def total_loaded_value(self) -> Decimal:
        return sum((s.line.total_value for s in self.settlements), ZERO)

    @property
    def total_remaining_quantity(self) -> Decimal:
        return sum((s.remaining for s in self.settlements), ZERO)

    @property
    def total_sold_quantity(self) -> Decimal:
        return sum((s.sold for s in self.settlements), ZERO)

    @property
    def total_sold_value(self) -> Decimal:
        return sum((s.sold_value for s in self.settlements), ZERO)


def line_key_of(key: ProductType | str) -> str:
    """Accept ``ProductType.RICE`` or ``"rice"`` as a line key."""
    if isinstance(key, ProductType):
        return key.value
    return str(key)


def plan_restoration(lots_used: tuple[LotUse, ...], remaining: Decimal) -> tuple[LotRestoration, ...]:
    """
    Walk lots in reverse consumption order, returning exactly ``remaining``.

    The most recently consumed lot is returned first, so the lot that was
    split at commit time goes back before the whole lots loaded ahead of it.
    """
    left = remaining
    actions: list[LotRestoration] = []
    for use in reversed(lots_used):
        weight = use.weight_used
        if left >= weight:
            actions.append(LotRestoration(use.lot_id, RestorationAction.RESTORE, weight, ZERO))
            left -= weight
        elif left > ZERO:
            actions.append(LotRestoration(use.lot_id, RestorationAction.SPLIT, left, weight - left))
            left = ZERO
        else:
            actions.append(LotRestoration(use.lot_id, RestorationAction.SELL, ZERO, weight))
    return tuple(actions)


class ReconciliationEngine:
    """
    Compute the outcome of reconciling a load.

    Contract:
        Pure.  Input is the load as committed and the remaining quantity
        per line; output is a ReconciliationResult.
    Non-goals:
        - Does not claim the load or touch lots; the reconciliation service
          applies the result in one transaction.
    """

    def normalize_remaining(
        self,
        load: Load,
        remaining_by_line: Mapping[ProductType | str, object],
    ) -> dict[str, Decimal]:
        """Validate the caller's map and return it keyed by line key."""
        load_id = str(load.load_id)
        raw: dict[str, object] = {}
        for key, value in remaining_by_line.items():
            line_key = line_key_of(key)
            if load.line(line_key) is None:
                raise UnknownLoadLineError(load_id, line_key)
            raw[line_key] = value

        result: dict[str, Decimal] = {}
        for line in load.lines:
            if line.line_key not in raw:
                raise MissingRemainingQuantityError(load_id, line.line_key)
            value = raw[line.line_key]
            try:
                remaining = to_decimal(value, "remaining")
            except InvalidQuantityError:
                raise InvalidRemainingQuantityError(
                    load_id, line.line_key, value, line.quantity
                ) from None
            if remaining < ZERO or remaining > line.quantity:
                raise InvalidRemainingQuantityError(
                    load_id, line.line_key, value, line.quantity
                )
            result[line.line_key] = remaining
        return result

    @traced_engine(
        "reconciliation",
        "1.0",
        fingerprint_fields=("load", "remaining_by_line"),
    )
    def reconcile(
        self,
        *,
        load: Load,
        remaining_by_line: Mapping[ProductType | str, object],
    ) -> ReconciliationResult:
        remaining = self.normalize_remaining(load, remaining_by_line)

        settlements = []
        for line in load.lines:
            line_remaining = remaining[line.line_key]
            sold = line.quantity - line_remaining
            settlements.append(
                LineSettlement(
                    line=line,
                    remaining=line_remaining,
                    sold=sold,
                    sold_value=sold * line.price_per_unit,
                    restorations=plan_restoration(line.lots_used, line_remaining),
                )
            )

        result = ReconciliationResult(settlements=tuple(settlements))
        logger.info(
            "reconciliation_settled",
            extra={
                "load_id": str(load.load_id),
                "line_count": len(settlements),
                "sold_quantity": str(result.total_sold_quantity),
                "remaining_quantity": str(result.total_remaining_quantity),
                "sold_value": str(result.total_sold_value),
            },
        )
        return result


def report_lines(
    result: ReconciliationResult,
    restored_lots: Mapping[str, tuple[UUID, ...]],
) -> tuple[LoadReportLine, ...]:
    """Report lines for a settled load; ``restored_lots`` maps line key to new available lots."""
    return tuple(
        LoadReportLine(
            line_key=s.line.line_key,
            product_type=s.line.product_type,
            loaded_quantity=s.line.quantity,
            remaining_quantity=s.remaining,
            sold_quantity=s.sold,
            price_per_unit=s.line.price_per_unit,
            sold_value=s.sold_value,
            lots_used=s.line.lots_used,
            restored_lots=restored_lots.get(s.line.line_key, ()),
        )
        for s in result.settlements
    )
