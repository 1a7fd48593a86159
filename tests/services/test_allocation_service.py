"""
Tests for planning allocations against stored lots.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_config import get_active_config
from stock_kernel.domain.dtos import TenantContext
from stock_kernel.domain.values import AllocationOrdering, ProductType
from stock_kernel.exceptions import (
    AmbiguousPriceTierError,
    InsufficientStockError,
    PriceTierNotFoundError,
)
from stock_services.operations import StockOperations


class TestPriceTiers:
    def test_lists_tiers_by_price(self, ops, tenant, bag):
        bag(weight="50", price="120")
        bag(weight="50", count=2, price="100")

        tiers = ops.list_price_tiers(tenant, ProductType.RICE)

        assert [t.tier_id for t in tiers] == ["rice@100", "rice@120"]
        assert tiers[0].total_weight == Decimal("100")
        assert tiers[0].lot_count == 2

    def test_no_stock_no_tiers(self, ops, tenant):
        assert ops.list_price_tiers(tenant, ProductType.FLOUR) == []

    def test_other_business_lots_are_invisible(self, ops, tenant, bag):
        other = TenantContext(business_id=uuid4(), actor_id=uuid4())
        bag(weight="50", ctx=other)

        assert ops.list_price_tiers(tenant, ProductType.RICE) == []
        with pytest.raises(InsufficientStockError):
            ops.plan_allocation(tenant, ProductType.RICE, "10")


class TestPlanAllocation:
    def test_plan_does_not_change_stock(self, ops, tenant, bag):
        bag(weight="50")
        before = ops.get_stock_totals(tenant, ProductType.RICE)

        plan = ops.plan_allocation(tenant, ProductType.RICE, "20")

        assert plan.quantity == Decimal("20")
        assert ops.get_stock_totals(tenant, ProductType.RICE) == before
        assert ops.list_price_tiers(tenant, ProductType.RICE)[0].total_weight == Decimal("50")

    def test_oldest_first_by_default(self, ops, tenant, bag):
        old = bag(weight="10")[0]
        bag(weight="10")

        plan = ops.plan_allocation(tenant, ProductType.RICE, "5")

        assert ops.config.allocation.ordering is AllocationOrdering.OLDEST_FIRST
        assert plan.uses[0].lot_id == old.lot_id

    def test_newest_first_when_configured(self, session_factory, clock, database_url, tenant):
        config = get_active_config(
            overrides={
                "database": {"url": database_url},
                "allocation": {"ordering": "newest_first"},
            }
        )
        ops = StockOperations(config=config, session_factory=session_factory, clock=clock)
        ops.bag_stock(tenant, ProductType.RICE, "10", 1, "100")
        clock.advance(60)
        (new,) = ops.bag_stock(tenant, ProductType.RICE, "10", 1, "100")

        plan = ops.plan_allocation(tenant, ProductType.RICE, "5")

        assert plan.uses[0].lot_id == new.lot_id

    def test_price_tier_selection(self, ops, tenant, bag):
        bag(weight="50", price="100")
        dear = bag(weight="50", price="120")[0]

        with pytest.raises(AmbiguousPriceTierError):
            ops.plan_allocation(tenant, ProductType.RICE, "10")
        with pytest.raises(PriceTierNotFoundError):
            ops.plan_allocation(tenant, ProductType.RICE, "10", price_tier="110")

        plan = ops.plan_allocation(tenant, ProductType.RICE, "10", price_tier="rice@120")
        assert plan.uses[0].lot_id == dear.lot_id
        assert plan.total_value == Decimal("1200")

    def test_insufficient_stock(self, ops, tenant, bag):
        bag(weight="50")
        with pytest.raises(InsufficientStockError):
            ops.plan_allocation(tenant, ProductType.RICE, "50.5")
