"""
Module: stock_kernel.selectors.lot_selector
Responsibility: Read access to lots: single lookups, the available lots of a
    product type in allocation order, and the lots on a load.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Every query is scoped to one business_id.
    - available() returns lots ordered by (created_at, id) ascending; the
      allocation engine applies the configured direction.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import Lot
from stock_kernel.domain.values import LotStatus, ProductType
from stock_kernel.exceptions import LotNotFoundError
from stock_kernel.models.lot import LotModel
from stock_kernel.selectors.base import BaseSelector


class LotSelector(BaseSelector[LotModel]):
    """Read-only queries over lots."""

    def get(self, business_id: UUID, lot_id: UUID) -> Lot:
        """Raises LotNotFoundError if the lot does not exist for this business."""
        row = self.session.execute(
            select(LotModel).where(
                LotModel.id == lot_id,
                LotModel.business_id == business_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise LotNotFoundError(str(lot_id))
        return row.to_dto()

    def available(self, business_id: UUID, product_type: ProductType) -> list[Lot]:
        rows = self.session.execute(
            select(LotModel)
            .where(
                LotModel.business_id == business_id,
                LotModel.product_type == product_type.value,
                LotModel.status == LotStatus.AVAILABLE.value,
            )
            .order_by(LotModel.created_at, LotModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def on_load(self, business_id: UUID, load_id: UUID) -> list[Lot]:
        rows = self.session.execute(
            select(LotModel)
            .where(
                LotModel.business_id == business_id,
                LotModel.load_id == load_id,
            )
            .order_by(LotModel.created_at, LotModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]
