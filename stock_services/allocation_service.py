"""
stock_services.allocation_service -- Plan allocations against the store.

Responsibility:
    Read the available lots of a product type and hand them to the pure
    AllocationPlanner, returning price tiers or an AllocationPlan.

Architecture position:
    Services -- orchestration over engines + kernel selectors.  Read-only:
    never writes, never commits.

Invariants enforced:
    - The plan records each lot's observed weight and version; the load
      committer re-checks both, so a plan never needs a lock to be safe.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from stock_engines.allocation import AllocationPlanner
from stock_kernel.domain.dtos import AllocationPlan, PriceTier, TenantContext
from stock_kernel.domain.values import ProductType
from stock_kernel.selectors.lot_selector import LotSelector


class AllocationService:
    """Store-backed front end of the allocation planner."""

    def __init__(self, session: Session, planner: AllocationPlanner):
        self._lots = LotSelector(session)
        self._planner = planner

    def price_tiers(self, ctx: TenantContext, product_type: ProductType) -> list[PriceTier]:
        lots = self._lots.available(ctx.business_id, product_type)
        return self._planner.price_tiers(product_type, lots)

    def plan(
        self,
        ctx: TenantContext,
        product_type: ProductType,
        quantity: Decimal | str | int,
        price_tier: Decimal | str | int | None = None,
    ) -> AllocationPlan:
        lots = self._lots.available(ctx.business_id, product_type)
        return self._planner.plan(
            business_id=ctx.business_id,
            product_type=product_type,
            quantity=quantity,
            lots=lots,
            price_tier=price_tier,
        )
