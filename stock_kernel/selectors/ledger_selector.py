"""
Module: stock_kernel.selectors.ledger_selector
Responsibility: Read access to the aggregate stock ledger, and the audit
    that compares it against the lots it summarises.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - A product type with no ledger row reads as all-zero totals.
    - The audit recomputes every ledger field from lots:
        bagged_total     = sum(weight) of available lots
        bagged_bag_count = count of available lots
        loaded_total     = sum(weight) of loaded lots
        loaded_bag_count = count of loaded lots
        sold_total       = sum(weight) of sold lots
        sold_value       = sum(weight * price) of sold lots

Failure modes:
    - None raised.  Discrepancies are returned, not thrown, so operators
      can see every mismatch at once.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.dtos import StockAuditResult, StockDiscrepancy, StockTotals
from stock_kernel.domain.values import ZERO, LedgerField, LotStatus, ProductType
from stock_kernel.logging_config import get_logger
from stock_kernel.models.lot import LotModel
from stock_kernel.models.stock_totals import StockTotalsModel
from stock_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.ledger")


class LedgerSelector(BaseSelector[StockTotalsModel]):
    """Read-only queries over stock totals."""

    def totals(self, business_id: UUID, product_type: ProductType) -> StockTotals:
        row = self.session.execute(
            select(StockTotalsModel).where(
                StockTotalsModel.business_id == business_id,
                StockTotalsModel.product_type == product_type.value,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            return StockTotals(business_id=business_id, product_type=product_type)
        return row.to_dto()

    def all_totals(self, business_id: UUID) -> list[StockTotals]:
        """Every ledger row for the business, ordered by product type."""
        rows = self.session.execute(
            select(StockTotalsModel)
            .where(StockTotalsModel.business_id == business_id)
            .order_by(StockTotalsModel.product_type)
            .execution_options(populate_existing=True)
        ).scalars()
        return [row.to_dto() for row in rows]

    def lot_sums(
        self, business_id: UUID, product_type: ProductType
    ) -> dict[LedgerField, Decimal | int]:
        """Ledger fields recomputed from lots."""
        rows = self.session.execute(
            select(
                LotModel.status,
                func.count(LotModel.id),
                func.coalesce(func.sum(LotModel.weight), 0),
                func.coalesce(func.sum(LotModel.weight * LotModel.price), 0),
            )
            .where(
                LotModel.business_id == business_id,
                LotModel.product_type == product_type.value,
            )
            .group_by(LotModel.status)
        ).all()

        by_status = {
            status: (int(count), Decimal(str(weight)), Decimal(str(value)))
            for status, count, weight, value in rows
        }
        available = by_status.get(LotStatus.AVAILABLE.value, (0, ZERO, ZERO))
        loaded = by_status.get(LotStatus.LOADED.value, (0, ZERO, ZERO))
        sold = by_status.get(LotStatus.SOLD.value, (0, ZERO, ZERO))
        return {
            LedgerField.BAGGED_TOTAL: available[1],
            LedgerField.BAGGED_BAG_COUNT: available[0],
            LedgerField.LOADED_TOTAL: loaded[1],
            LedgerField.LOADED_BAG_COUNT: loaded[0],
            LedgerField.SOLD_TOTAL: sold[1],
            LedgerField.SOLD_VALUE: sold[2],
        }

    def audit(
        self,
        business_id: UUID,
        product_types: Iterable[ProductType] | None = None,
    ) -> StockAuditResult:
        """Compare every ledger field with the sums recomputed from lots."""
        checked = tuple(product_types) if product_types is not None else tuple(ProductType)
        discrepancies: list[StockDiscrepancy] = []
        for product_type in checked:
            totals = self.totals(business_id, product_type)
            for field, lot_value in self.lot_sums(business_id, product_type).items():
                ledger_value = getattr(totals, field.value)
                # Numeric comparison: stored decimals carry trailing zeros
                if Decimal(ledger_value) != Decimal(lot_value):
                    discrepancies.append(
                        StockDiscrepancy(
                            product_type=product_type,
                            field=field,
                            ledger_value=Decimal(ledger_value),
                            lot_value=Decimal(lot_value),
                        )
                    )

        result = StockAuditResult(
            business_id=business_id,
            checked=checked,
            discrepancies=tuple(discrepancies),
        )
        if not result.is_consistent:
            logger.warning(
                "stock_audit_discrepancies",
                extra={
                    "business_id": str(business_id),
                    "discrepancy_count": len(discrepancies),
                    "fields": [
                        f"{d.product_type.value}.{d.field.value}" for d in discrepancies
                    ],
                },
            )
        return result
