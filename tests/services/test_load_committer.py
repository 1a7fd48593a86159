"""
Tests for committing allocation plans as a load.

Covers:
- Lots move to loaded, the partial lot shrinks and a residual lot appears
- Ledger deltas for bagged / loaded totals and bag counts
- Validation before any write
- Stale plans conflict and leave nothing applied, across every line
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.dtos import TenantContext
from stock_kernel.domain.values import LoadStatus, LotStatus, ProductType
from stock_kernel.exceptions import (
    DuplicateLoadLineError,
    EmptyLoadError,
    LotStateConflictError,
    TenantMismatchError,
)
from stock_kernel.selectors.lot_selector import LotSelector
from stock_services.load_committer import LoadCommitter


class TestCommitLoad:
    def test_rice_scenario(self, ops, tenant, assignee, bag, session):
        a = bag(weight="50")[0]
        b = bag(weight="30")[0]

        plan = ops.plan_allocation(tenant, ProductType.RICE, "70")
        load = ops.commit_load(tenant, [plan], assignee, notes="route 7")

        line = load.line("rice")
        assert line.quantity == Decimal("70")
        assert line.total_value == Decimal("7000")
        assert [u.lot_id for u in line.lots_used] == [a.lot_id, b.lot_id]
        assert [u.weight_used for u in line.lots_used] == [Decimal("50"), Decimal("20")]
        assert load.total_weight == Decimal("70")
        assert load.total_lots == 2
        assert load.status is LoadStatus.PREPARED
        assert load.assignee == assignee
        assert load.notes == "route 7"

        lots = LotSelector(session)
        loaded_a = lots.get(tenant.business_id, a.lot_id)
        loaded_b = lots.get(tenant.business_id, b.lot_id)
        assert loaded_a.status is LotStatus.LOADED
        assert loaded_a.load_id == load.load_id
        assert loaded_a.assignee_id == assignee.assignee_id
        assert loaded_b.weight == Decimal("20")
        assert loaded_b.version == 2

        (residual,) = lots.available(tenant.business_id, ProductType.RICE)
        assert residual.weight == Decimal("10")
        assert residual.parent_lot_id == b.lot_id
        assert residual.price == b.price
        assert residual.created_at == b.created_at

    def test_ledger_after_commit(self, ops, tenant, assignee, bag):
        bag(weight="50")
        bag(weight="30")

        plan = ops.plan_allocation(tenant, ProductType.RICE, "70")
        ops.commit_load(tenant, [plan], assignee)

        totals = ops.get_stock_totals(tenant, ProductType.RICE)
        assert totals.bagged_total == Decimal("10")
        assert totals.bagged_bag_count == 1
        assert totals.loaded_total == Decimal("70")
        assert totals.loaded_bag_count == 2
        assert totals.sold_total == Decimal("0")
        assert totals.conserved_total == Decimal("80")

    def test_whole_lots_leave_no_residual(self, ops, tenant, assignee, bag):
        bag(weight="50", count=2)

        plan = ops.plan_allocation(tenant, ProductType.RICE, "100")
        ops.commit_load(tenant, [plan], assignee)

        assert ops.list_price_tiers(tenant, ProductType.RICE) == []
        totals = ops.get_stock_totals(tenant, ProductType.RICE)
        assert totals.bagged_bag_count == 0
        assert totals.loaded_bag_count == 2

    def test_multi_line_load(self, ops, tenant, assignee, bag):
        bag(ProductType.RICE, weight="50")
        bag(ProductType.PADDY, weight="40", price="80")

        plans = [
            ops.plan_allocation(tenant, ProductType.RICE, "25"),
            ops.plan_allocation(tenant, ProductType.PADDY, "40"),
        ]
        load = ops.commit_load(tenant, plans, assignee)

        assert [line.line_key for line in load.lines] == ["paddy", "rice"]
        assert load.total_weight == Decimal("65")
        assert load.total_value == Decimal("5700")
        assert load.total_lots == 2

    def test_load_is_listed_until_reconciled(self, ops, tenant, assignee, bag):
        bag(weight="50")
        plan = ops.plan_allocation(tenant, ProductType.RICE, "10")
        load = ops.commit_load(tenant, [plan], assignee)

        assert [l.load_id for l in ops.list_prepared_loads(tenant)] == [load.load_id]
        assert ops.list_prepared_loads(tenant, assignee_id="someone-else") == []
        assert ops.get_load(tenant, load.load_id) == load


class TestCommitValidation:
    def test_empty_load(self, ops, tenant, assignee):
        with pytest.raises(EmptyLoadError):
            ops.commit_load(tenant, [], assignee)

    def test_duplicate_product_type(self, ops, tenant, assignee, bag):
        bag(weight="50")
        plan = ops.plan_allocation(tenant, ProductType.RICE, "10")

        with pytest.raises(DuplicateLoadLineError) as exc_info:
            ops.commit_load(tenant, [plan, plan], assignee)
        assert exc_info.value.line_key == "rice"

    def test_plan_from_another_business(self, ops, tenant, assignee, bag):
        other = TenantContext(business_id=uuid4(), actor_id=uuid4())
        bag(weight="50", ctx=other)
        foreign = ops.plan_allocation(other, ProductType.RICE, "10")

        with pytest.raises(TenantMismatchError):
            ops.commit_load(tenant, [foreign], assignee)

        assert ops.get_stock_totals(other, ProductType.RICE).loaded_total == Decimal("0")

    def test_validation_runs_before_any_write(self, session, clock, tenant, assignee, bag):
        bag(weight="50")
        committer = LoadCommitter(session, clock)

        with pytest.raises(EmptyLoadError):
            committer.validate(tenant, [])
        assert not session.new


class TestStalePlans:
    def test_second_commit_of_same_lots_conflicts(self, ops, tenant, assignee, bag):
        bag(weight="50")
        bag(weight="30")
        first = ops.plan_allocation(tenant, ProductType.RICE, "70")
        second = ops.plan_allocation(tenant, ProductType.RICE, "70")

        ops.commit_load(tenant, [first], assignee)
        before = ops.get_stock_totals(tenant, ProductType.RICE)

        with pytest.raises(LotStateConflictError):
            ops.commit_load(tenant, [second], assignee)

        after = ops.get_stock_totals(tenant, ProductType.RICE)
        assert after.bagged_total == before.bagged_total
        assert after.loaded_total == before.loaded_total
        assert len(ops.list_prepared_loads(tenant)) == 1

    def test_conflict_on_later_line_rolls_back_earlier_lines(
        self, ops, tenant, assignee, bag, session
    ):
        rice = bag(ProductType.RICE, weight="50")[0]
        bag(ProductType.RICE_SAMBA, weight="40")

        rice_plan = ops.plan_allocation(tenant, ProductType.RICE, "20")
        samba_plan = ops.plan_allocation(tenant, ProductType.RICE_SAMBA, "40")
        # Someone else loads the samba lot first
        ops.commit_load(tenant, [ops.plan_allocation(tenant, ProductType.RICE_SAMBA, "40")], assignee)

        with pytest.raises(LotStateConflictError):
            ops.commit_load(tenant, [rice_plan, samba_plan], assignee)

        untouched = LotSelector(session).get(tenant.business_id, rice.lot_id)
        assert untouched.status is LotStatus.AVAILABLE
        assert untouched.weight == Decimal("50")
        assert untouched.version == 1
        rice_totals = ops.get_stock_totals(tenant, ProductType.RICE)
        assert rice_totals.bagged_total == Decimal("50")
        assert rice_totals.loaded_total == Decimal("0")
        assert len(LotSelector(session).available(tenant.business_id, ProductType.RICE)) == 1

    def test_lot_weight_changed_since_planning(self, ops, tenant, assignee, bag):
        bag(weight="50")
        stale = ops.plan_allocation(tenant, ProductType.RICE, "50")
        # A partial commit shrinks the lot to 20 and leaves a residual of 30
        ops.commit_load(tenant, [ops.plan_allocation(tenant, ProductType.RICE, "20")], assignee)

        with pytest.raises(LotStateConflictError):
            ops.commit_load(tenant, [stale], assignee)
