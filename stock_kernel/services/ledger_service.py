"""
StockLedger -- relative increments to the aggregate stock ledger.

Responsibility:
    Applies StockDelta values to the stock_totals row of a product type.
    Every change is a relative increment (``column = column + :delta``)
    executed by the database, so two transactions touching the same row
    never overwrite each other's totals.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the load committer, the reconciliation service and the
    intake (bagging) service, always inside the caller's transaction.

Invariants enforced:
    - No read-modify-write: totals are never read into Python, changed and
      written back.
    - Missing rows are created with an insert-or-ignore on the
      (business_id, product_type) unique key before the increment.
    - updated_at comes from the injected Clock, like every other stored
      timestamp, so last_updated is reproducible in tests.
    - Rows are touched in product-type order so concurrent multi-line
      transactions take row locks in the same order.

Failure modes:
    - StoreUnavailableError if the ledger row cannot be found after the
      insert-or-ignore (the store lost a row mid-transaction).
    - Database errors propagate to session_scope, which translates them.

Audit relevance:
    Each applied delta is logged at DEBUG with the product type and the
    non-zero fields.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import StockDelta, TenantContext
from stock_kernel.domain.values import ZERO, LedgerField, ProductType
from stock_kernel.exceptions import StoreUnavailableError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_totals import StockTotalsModel

logger = get_logger("services.ledger")


class StockLedger:
    """
    Increment-only writer for stock totals.

    Contract:
        ``apply_delta`` adds to one field, ``apply_deltas`` adds a whole
        StockDelta to one product type, ``apply_many`` adds several product
        types in a deterministic order.

    Guarantees:
        - Flushes within the caller's transaction; never commits.
        - A zero delta touches nothing.

    Non-goals:
        - There is no "set" operation.  Totals can only drift from lot sums
          through a bug; LedgerSelector.audit detects that.
    """

    def __init__(self, session: Session, clock: Clock):
        self._session = session
        self._clock = clock

    def apply_delta(
        self,
        ctx: TenantContext,
        product_type: ProductType,
        field: LedgerField,
        amount: Decimal | int,
    ) -> None:
        """Add one signed amount to one ledger field."""
        self.apply_deltas(ctx, product_type, StockDelta(**{field.value: amount}))

    def apply_deltas(
        self,
        ctx: TenantContext,
        product_type: ProductType,
        delta: StockDelta,
    ) -> None:
        """Add every non-zero component of ``delta`` in one UPDATE."""
        if delta.is_zero:
            return

        self._ensure_row(ctx, product_type)

        table = StockTotalsModel
        values = {
            field.value: getattr(table, field.value) + amount
            for field, amount in delta.items()
        }
        values["updated_by_id"] = ctx.actor_id
        values["updated_at"] = self._clock.now()

        result = self._session.execute(
            update(table)
            .where(
                table.business_id == ctx.business_id,
                table.product_type == product_type.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StoreUnavailableError(
                f"stock totals row for {product_type.value} vanished during update"
            )

        logger.debug(
            "stock_totals_incremented",
            extra={
                "product_type": product_type.value,
                "delta": {field.value: amount for field, amount in delta.items()},
            },
        )

    def apply_many(
        self,
        ctx: TenantContext,
        deltas: Mapping[ProductType, StockDelta],
    ) -> None:
        for product_type in sorted(deltas, key=lambda p: p.value):
            self.apply_deltas(ctx, product_type, deltas[product_type])

    def _ensure_row(self, ctx: TenantContext, product_type: ProductType) -> None:
        now = self._clock.now()
        row = {
            "id": uuid4(),
            "business_id": ctx.business_id,
            "product_type": product_type.value,
            "created_by_id": ctx.actor_id,
            "created_at": now,
            "updated_at": now,
            "bagged_total": ZERO,
            "bagged_bag_count": 0,
            "loaded_total": ZERO,
            "loaded_bag_count": 0,
            "sold_total": ZERO,
            "sold_value": ZERO,
        }
        dialect = self._session.get_bind().dialect.name
        table = StockTotalsModel.__table__

        if dialect in ("postgresql", "sqlite"):
            insert_fn = postgresql.insert if dialect == "postgresql" else sqlite.insert
            self._session.execute(
                insert_fn(table)
                .values(**row)
                .on_conflict_do_nothing(index_elements=["business_id", "product_type"])
            )
            return

        # Other dialects: check, then insert under a savepoint and tolerate
        # a concurrent creator.
        exists = self._session.execute(
            select(StockTotalsModel.id).where(
                StockTotalsModel.business_id == ctx.business_id,
                StockTotalsModel.product_type == product_type.value,
            )
        ).scalar_one_or_none()
        if exists is not None:
            return
        savepoint = self._session.begin_nested()
        try:
            self._session.execute(insert(table).values(**row))
            savepoint.commit()
        except IntegrityError:
            logger.debug(
                "stock_totals_create_race",
                extra={"product_type": product_type.value},
            )
            savepoint.rollback()
