"""
stock_services.intake_service -- Bag new stock.

Responsibility:
    Create ``bag_count`` available lots of ``bag_weight`` at ``price`` and
    add them to the ledger in the same transaction.  Bagging is the only
    operation that adds weight to a product type.

Architecture position:
    Services -- orchestration over kernel services (LotStore, StockLedger).
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import Lot, StockDelta, TenantContext
from stock_kernel.domain.values import ProductType, non_negative, positive
from stock_kernel.exceptions import InvalidQuantityError
from stock_kernel.logging_config import get_logger
from stock_kernel.services.ledger_service import StockLedger
from stock_kernel.services.lot_store import LotStore

logger = get_logger("services.intake")


class IntakeService:
    def __init__(self, session: Session, clock: Clock):
        self._clock = clock
        self._lots = LotStore(session)
        self._ledger = StockLedger(session, clock)

    def bag_stock(
        self,
        ctx: TenantContext,
        product_type: ProductType,
        bag_weight: Decimal | str | int,
        bag_count: int,
        price: Decimal | str | int,
    ) -> list[Lot]:
        weight = positive(bag_weight, "bag_weight")
        unit_price = non_negative(price, "price")
        if isinstance(bag_count, bool) or not isinstance(bag_count, int) or bag_count < 1:
            raise InvalidQuantityError("bag_count", bag_count, "must be a whole number >= 1")

        now = self._clock.now()
        lots = [
            self._lots.create_lot(ctx, product_type, weight, unit_price, created_at=now)
            for _ in range(bag_count)
        ]
        self._ledger.apply_deltas(
            ctx,
            product_type,
            StockDelta(bagged_total=weight * bag_count, bagged_bag_count=bag_count),
        )

        logger.info(
            "stock_bagged",
            extra={
                "product_type": product_type.value,
                "bag_weight": str(weight),
                "bag_count": bag_count,
                "price": str(unit_price),
            },
        )
        return lots
