"""
Tests for StockLedger relative increments and the ledger audit.
"""

from decimal import Decimal
from uuid import uuid4

from sqlalchemy import func, select

from stock_kernel.domain.dtos import StockDelta, TenantContext
from stock_kernel.domain.values import LedgerField, ProductType
from stock_kernel.models.stock_totals import StockTotalsModel
from stock_kernel.selectors.ledger_selector import LedgerSelector
from stock_kernel.services.ledger_service import StockLedger


def row_count(session):
    return session.execute(select(func.count(StockTotalsModel.id))).scalar_one()


class TestApplyDeltas:
    def test_missing_row_reads_as_zero(self, session, tenant):
        totals = LedgerSelector(session).totals(tenant.business_id, ProductType.RICE)

        assert totals.bagged_total == Decimal("0")
        assert totals.sold_value == Decimal("0")
        assert totals.last_updated is None
        assert row_count(session) == 0

    def test_first_delta_creates_the_row(self, session, clock, tenant):
        StockLedger(session, clock).apply_deltas(
            tenant,
            ProductType.RICE,
            StockDelta(bagged_total=Decimal("50"), bagged_bag_count=1),
        )

        totals = LedgerSelector(session).totals(tenant.business_id, ProductType.RICE)
        assert totals.bagged_total == Decimal("50")
        assert totals.bagged_bag_count == 1
        assert totals.loaded_total == Decimal("0")
        assert row_count(session) == 1

    def test_deltas_accumulate(self, session, clock, tenant):
        ledger = StockLedger(session, clock)
        ledger.apply_deltas(tenant, ProductType.RICE, StockDelta(bagged_total=Decimal("50")))
        ledger.apply_deltas(tenant, ProductType.RICE, StockDelta(bagged_total=Decimal("30")))
        ledger.apply_deltas(
            tenant,
            ProductType.RICE,
            StockDelta(bagged_total=Decimal("-70"), loaded_total=Decimal("70")),
        )

        totals = LedgerSelector(session).totals(tenant.business_id, ProductType.RICE)
        assert totals.bagged_total == Decimal("10")
        assert totals.loaded_total == Decimal("70")
        assert row_count(session) == 1

    def test_apply_delta_single_field(self, session, clock, tenant):
        ledger = StockLedger(session, clock)
        ledger.apply_delta(tenant, ProductType.FLOUR, LedgerField.SOLD_VALUE, Decimal("12.5"))
        ledger.apply_delta(tenant, ProductType.FLOUR, LedgerField.SOLD_VALUE, Decimal("7.5"))

        totals = LedgerSelector(session).totals(tenant.business_id, ProductType.FLOUR)
        assert totals.sold_value == Decimal("20")

    def test_zero_delta_touches_nothing(self, session, clock, tenant):
        StockLedger(session, clock).apply_deltas(tenant, ProductType.RICE, StockDelta())
        assert row_count(session) == 0

    def test_apply_many(self, session, clock, tenant):
        StockLedger(session, clock).apply_many(
            tenant,
            {
                ProductType.RICE: StockDelta(loaded_total=Decimal("5")),
                ProductType.PADDY: StockDelta(loaded_total=Decimal("7")),
            },
        )

        selector = LedgerSelector(session)
        assert [t.product_type for t in selector.all_totals(tenant.business_id)] == [
            ProductType.PADDY,
            ProductType.RICE,
        ]
        assert selector.totals(tenant.business_id, ProductType.PADDY).loaded_total == Decimal("7")

    def test_rows_are_per_business(self, session, clock, tenant):
        other = TenantContext(business_id=uuid4(), actor_id=uuid4())
        ledger = StockLedger(session, clock)
        ledger.apply_deltas(tenant, ProductType.RICE, StockDelta(bagged_total=Decimal("1")))
        ledger.apply_deltas(other, ProductType.RICE, StockDelta(bagged_total=Decimal("2")))

        selector = LedgerSelector(session)
        assert selector.totals(tenant.business_id, ProductType.RICE).bagged_total == Decimal("1")
        assert selector.totals(other.business_id, ProductType.RICE).bagged_total == Decimal("2")

    def test_last_updated_follows_the_clock(self, session, clock, tenant):
        ledger = StockLedger(session, clock)
        selector = LedgerSelector(session)

        ledger.apply_deltas(tenant, ProductType.RICE, StockDelta(bagged_total=Decimal("5")))
        created = clock.now()
        assert selector.totals(tenant.business_id, ProductType.RICE).last_updated == created

        later = clock.advance(3600)
        ledger.apply_deltas(tenant, ProductType.RICE, StockDelta(bagged_total=Decimal("5")))
        assert selector.totals(tenant.business_id, ProductType.RICE).last_updated == later

    def test_operations_stamp_totals_with_their_clock(self, ops, tenant, clock):
        ops.bag_stock(tenant, ProductType.RICE, "50", 1, "100")
        assert ops.get_stock_totals(tenant, ProductType.RICE).last_updated == clock.now()


class TestAudit:
    def test_consistent_after_operations(self, ops, tenant, assignee, bag):
        bag(weight="50")
        bag(ProductType.PADDY, weight="25", count=4, price="80")
        load = ops.commit_load(
            tenant,
            [
                ops.plan_allocation(tenant, ProductType.RICE, "35"),
                ops.plan_allocation(tenant, ProductType.PADDY, "60"),
            ],
            assignee,
        )
        assert ops.audit_stock(tenant).is_consistent

        ops.reconcile(tenant, load.load_id, {"rice": "5", "paddy": "12.5"})
        assert ops.audit_stock(tenant).is_consistent

    def test_drift_is_reported(self, session, clock, tenant, ops, bag, captured_logs):
        bag(weight="50")
        StockLedger(session, clock).apply_deltas(
            tenant, ProductType.RICE, StockDelta(bagged_total=Decimal("1"))
        )

        result = LedgerSelector(session).audit(tenant.business_id, [ProductType.RICE])

        assert not result.is_consistent
        (discrepancy,) = result.discrepancies
        assert discrepancy.field is LedgerField.BAGGED_TOTAL
        assert discrepancy.ledger_value == Decimal("51")
        assert discrepancy.lot_value == Decimal("50")
        assert any(r["message"] == "stock_audit_discrepancies" for r in captured_logs())

    def test_lot_sums(self, session, tenant, bag):
        bag(weight="50", count=2)

        sums = LedgerSelector(session).lot_sums(tenant.business_id, ProductType.RICE)

        assert sums[LedgerField.BAGGED_TOTAL] == Decimal("100")
        assert sums[LedgerField.BAGGED_BAG_COUNT] == 2
        assert sums[LedgerField.LOADED_BAG_COUNT] == 0
        assert sums[LedgerField.SOLD_VALUE] == Decimal("0")
