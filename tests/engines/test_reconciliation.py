"""
Tests for the reconciliation engine.

Covers:
- Remaining-quantity validation order: unknown line, missing line, range
- Sold / remaining split and sold value per line
- Reverse-order, weight-exact restoration with a single split
- Ledger deltas conserve bagged + loaded + sold
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stock_engines.reconciliation import (
    ReconciliationEngine,
    RestorationAction,
    plan_restoration,
    report_lines,
)
from stock_kernel.domain.dtos import Assignee, Load, LoadLine, LotUse
from stock_kernel.domain.values import ZERO, LoadStatus, ProductType
from stock_kernel.exceptions import (
    InvalidRemainingQuantityError,
    MissingRemainingQuantityError,
    UnknownLoadLineError,
)


def load_line(product_type, weights, price="100"):
    price = Decimal(price)
    uses = tuple(LotUse(uuid4(), Decimal(str(w)), price) for w in weights)
    quantity = sum((u.weight_used for u in uses), ZERO)
    return LoadLine(
        line_key=product_type.value,
        product_type=product_type,
        quantity=quantity,
        price_per_unit=price,
        total_value=quantity * price,
        lots_used=uses,
    )


def make_load(*lines):
    return Load(
        load_id=uuid4(),
        business_id=uuid4(),
        lines=tuple(lines),
        total_weight=sum((line.quantity for line in lines), ZERO),
        total_value=sum((line.total_value for line in lines), ZERO),
        total_lots=sum(len(line.lots_used) for line in lines),
        status=LoadStatus.PREPARED,
        assignee=Assignee("rep-001"),
        notes="",
        created_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        created_by_id=uuid4(),
    )


class TestPlanRestoration:
    def test_rice_scenario_splits_last_lot(self):
        # 50 whole + 20 from a second lot loaded, 20 comes back
        a = LotUse(uuid4(), Decimal("50"), Decimal("100"))
        b = LotUse(uuid4(), Decimal("20"), Decimal("100"))

        actions = plan_restoration((a, b), Decimal("20"))

        assert [(r.lot_id, r.action) for r in actions] == [
            (b.lot_id, RestorationAction.RESTORE),
            (a.lot_id, RestorationAction.SELL),
        ]
        assert actions[0].restored_weight == Decimal("20")
        assert actions[1].sold_weight == Decimal("50")

    def test_boundary_lot_is_split(self):
        a = LotUse(uuid4(), Decimal("50"), Decimal("100"))
        b = LotUse(uuid4(), Decimal("20"), Decimal("100"))

        actions = plan_restoration((a, b), Decimal("30"))

        assert actions[0].action is RestorationAction.RESTORE
        assert actions[1].action is RestorationAction.SPLIT
        assert actions[1].restored_weight == Decimal("10")
        assert actions[1].sold_weight == Decimal("40")

    def test_nothing_remaining_sells_everything(self):
        uses = tuple(LotUse(uuid4(), Decimal("10"), Decimal("1")) for _ in range(3))
        actions = plan_restoration(uses, ZERO)
        assert all(r.action is RestorationAction.SELL for r in actions)

    def test_everything_remaining_restores_everything(self):
        uses = tuple(LotUse(uuid4(), Decimal("10"), Decimal("1")) for _ in range(3))
        actions = plan_restoration(uses, Decimal("30"))
        assert all(r.action is RestorationAction.RESTORE for r in actions)

    @given(
        weights=st.lists(
            st.decimals(min_value=Decimal("0.1"), max_value=Decimal("60"), places=1),
            min_size=1,
            max_size=10,
        ),
        data=st.data(),
    )
    @settings(max_examples=200, deadline=None)
    def test_restores_exactly_the_remaining_weight(self, weights, data):
        uses = tuple(LotUse(uuid4(), w, Decimal("1")) for w in weights)
        total = sum(weights, ZERO)
        remaining = data.draw(
            st.decimals(min_value=ZERO, max_value=total, places=1)
        )

        actions = plan_restoration(uses, remaining)

        assert sum((r.restored_weight for r in actions), ZERO) == remaining
        assert sum((r.sold_weight for r in actions), ZERO) == total - remaining
        assert sum(1 for r in actions if r.action is RestorationAction.SPLIT) <= 1
        for action, use in zip(actions, reversed(uses)):
            assert action.lot_id == use.lot_id
            assert action.restored_weight + action.sold_weight == use.weight_used


class TestNormalizeRemaining:
    def setup_method(self):
        self.engine = ReconciliationEngine()
        self.load = make_load(
            load_line(ProductType.RICE, [50, 20]),
            load_line(ProductType.PADDY, [40]),
        )

    def test_accepts_enum_and_string_keys(self):
        result = self.engine.normalize_remaining(
            self.load, {ProductType.RICE: "20", "paddy": 0}
        )
        assert result == {"rice": Decimal("20"), "paddy": ZERO}

    def test_unknown_line_reported_before_missing(self):
        with pytest.raises(UnknownLoadLineError) as exc_info:
            self.engine.normalize_remaining(self.load, {"flour": 1})
        assert exc_info.value.line_key == "flour"

    def test_missing_line(self):
        with pytest.raises(MissingRemainingQuantityError) as exc_info:
            self.engine.normalize_remaining(self.load, {"rice": 1})
        assert exc_info.value.line_key == "paddy"
        assert exc_info.value.load_id == str(self.load.load_id)

    @pytest.mark.parametrize("value", ["-1", "70.1", "many", None, "0.1111111111"])
    def test_out_of_range_or_non_numeric(self, value):
        with pytest.raises(InvalidRemainingQuantityError) as exc_info:
            self.engine.normalize_remaining(self.load, {"rice": value, "paddy": 0})
        assert exc_info.value.loaded == "70"

    def test_bounds_are_inclusive(self):
        result = self.engine.normalize_remaining(self.load, {"rice": 70, "paddy": 0})
        assert result["rice"] == Decimal("70")


class TestReconcile:
    def setup_method(self):
        self.engine = ReconciliationEngine()

    def test_rice_scenario(self):
        load = make_load(load_line(ProductType.RICE, [50, 20]))

        result = self.engine.reconcile(load=load, remaining_by_line={"rice": "20"})

        (settlement,) = result.settlements
        assert settlement.sold == Decimal("50")
        assert settlement.sold_value == Decimal("5000")
        assert settlement.lots_returned == 1

        delta = result.deltas[ProductType.RICE]
        assert delta.bagged_total == Decimal("20")
        assert delta.bagged_bag_count == 1
        assert delta.loaded_total == Decimal("-70")
        assert delta.loaded_bag_count == -2
        assert delta.sold_total == Decimal("50")
        assert delta.sold_value == Decimal("5000")
        assert delta.conserved_change == ZERO

    def test_totals_span_lines(self):
        load = make_load(
            load_line(ProductType.RICE, [50, 20], price="100"),
            load_line(ProductType.PADDY, [40], price="80"),
        )

        result = self.engine.reconcile(
            load=load, remaining_by_line={"rice": 0, "paddy": 10}
        )

        assert result.total_loaded_quantity == Decimal("110")
        assert result.total_loaded_value == Decimal("10200")
        assert result.total_sold_quantity == Decimal("100")
        assert result.total_remaining_quantity == Decimal("10")
        assert result.total_sold_value == Decimal("9400")
        assert set(result.deltas) == {ProductType.RICE, ProductType.PADDY}

    def test_report_lines_carry_restored_lots(self):
        load = make_load(load_line(ProductType.RICE, [50, 20]))
        result = self.engine.reconcile(load=load, remaining_by_line={"rice": "30"})
        child = uuid4()

        (line,) = report_lines(result, {"rice": (child,)})

        assert line.loaded_quantity == Decimal("70")
        assert line.remaining_quantity == Decimal("30")
        assert line.sold_quantity == Decimal("40")
        assert line.restored_lots == (child,)
        assert line.lots_used == load.lines[0].lots_used

    def test_validation_failure_propagates(self):
        load = make_load(load_line(ProductType.RICE, [10]))
        with pytest.raises(InvalidRemainingQuantityError):
            self.engine.reconcile(load=load, remaining_by_line={"rice": "11"})

    @given(
        weights=st.lists(
            st.decimals(min_value=Decimal("0.5"), max_value=Decimal("50"), places=1),
            min_size=1,
            max_size=6,
        ),
        data=st.data(),
    )
    @settings(max_examples=100, deadline=None)
    def test_deltas_conserve_weight(self, weights, data):
        line = load_line(ProductType.RICE, weights)
        remaining = data.draw(st.decimals(min_value=ZERO, max_value=line.quantity, places=1))

        result = self.engine.reconcile(
            load=make_load(line), remaining_by_line={"rice": remaining}
        )

        delta = result.deltas[ProductType.RICE]
        assert delta.conserved_change == ZERO
        assert delta.bagged_bag_count + delta.loaded_bag_count <= 0
