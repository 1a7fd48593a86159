"""
LotStore -- lot creation and guarded lot status transitions.

Responsibility:
    Creates lots (bagging, residual and restored splits) and moves lots
    between statuses.  Every transition is a single UPDATE whose WHERE
    clause repeats the status and version the caller last saw, so a lot
    that changed in between is detected instead of overwritten.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the load committer and the reconciliation service.

Invariants enforced:
    - No double allocation: ``available -> loaded`` succeeds for exactly
      one transaction per lot version.  The loser sees rowcount 0 and gets
      LotStateConflictError.
    - Exact consumption: a partially consumed lot shrinks to the weight
      used and a new available child lot holds the residual, at the same
      price and created_at as its parent.
    - Forward-only status: transitions are validated against
      LotStatus.can_transition_to before any SQL is issued.

Failure modes:
    - LotNotFoundError if the lot id does not exist for the business.
    - LotStateConflictError if status or version no longer match.

Audit relevance:
    Every transition is logged at DEBUG with lot id, from/to status and
    the new version.  Split lots carry parent_lot_id.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from stock_kernel.db.base import as_utc
from stock_kernel.domain.dtos import Lot, PlannedLotUse, TenantContext
from stock_kernel.domain.values import LotStatus, ProductType, positive
from stock_kernel.exceptions import LotNotFoundError, LotStateConflictError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.lot import LotModel

logger = get_logger("services.lot_store")

# Columns cleared whenever a lot leaves a load, sold or restored.
_OFF_LOAD = {"load_id": None, "assignee_id": None, "loaded_at": None}


class LotStore:
    """
    Writer for lots.

    Contract:
        Flushes within the caller's transaction; never commits.

    Guarantees:
        - A method that returns has changed exactly the rows it names.
        - A method that raises has changed nothing of its own; the caller's
          transaction is expected to roll back.
    """

    def __init__(self, session: Session):
        self._session = session

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_lot(
        self,
        ctx: TenantContext,
        product_type: ProductType,
        weight: Decimal,
        price: Decimal,
        created_at: datetime,
        status: LotStatus = LotStatus.AVAILABLE,
        parent_lot_id: UUID | None = None,
    ) -> Lot:
        positive(weight, "weight")
        model = LotModel(
            business_id=ctx.business_id,
            product_type=product_type.value,
            weight=weight,
            price=price,
            status=status.value,
            version=1,
            parent_lot_id=parent_lot_id,
            created_at=created_at,
            created_by_id=ctx.actor_id,
        )
        self._session.add(model)
        self._session.flush()
        logger.debug(
            "lot_created",
            extra={
                "lot_id": str(model.id),
                "product_type": product_type.value,
                "weight": str(weight),
                "price": str(price),
                "parent_lot_id": str(parent_lot_id) if parent_lot_id else None,
            },
        )
        return model.to_dto()

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def load_lot(
        self,
        ctx: TenantContext,
        use: PlannedLotUse,
        load_id: UUID,
        assignee_id: str,
        loaded_at: datetime,
    ) -> Lot | None:
        """
        Move one planned lot from available to loaded.

        Postconditions:
            - The lot is loaded on ``load_id`` with weight == use.weight_used
              and its version incremented.
            - If the use was partial, a new available lot holding the
              residual weight is returned; otherwise None.

        Raises:
            LotStateConflictError: the lot is no longer available at the
                version the plan saw, or its weight changed.
        """
        row = self._fetch(ctx, use.lot_id)
        if (
            row.status != LotStatus.AVAILABLE.value
            or row.version != use.expected_version
            or row.weight != use.lot_weight
        ):
            raise LotStateConflictError(
                str(use.lot_id), LotStatus.AVAILABLE.value, use.expected_version
            )

        self._transition(
            ctx,
            row,
            expected=LotStatus.AVAILABLE,
            expected_version=use.expected_version,
            target=LotStatus.LOADED,
            weight=use.weight_used,
            load_id=load_id,
            assignee_id=assignee_id,
            loaded_at=loaded_at,
        )

        if not use.is_partial:
            return None

        return self.create_lot(
            ctx,
            ProductType(row.product_type),
            use.residual_weight,
            row.price,
            created_at=as_utc(row.created_at),
            parent_lot_id=row.id,
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def mark_sold(self, ctx: TenantContext, lot: Lot) -> None:
        """Loaded lot fully sold.  The load report keeps which load it left on."""
        row = self._fetch(ctx, lot.lot_id)
        self._transition(
            ctx,
            row,
            expected=LotStatus.LOADED,
            expected_version=lot.version,
            expected_load_id=lot.load_id,
            target=LotStatus.SOLD,
            **_OFF_LOAD,
        )

    def restore(self, ctx: TenantContext, lot: Lot) -> None:
        """Loaded lot returned whole: back to available, off the load."""
        row = self._fetch(ctx, lot.lot_id)
        self._transition(
            ctx,
            row,
            expected=LotStatus.LOADED,
            expected_version=lot.version,
            expected_load_id=lot.load_id,
            target=LotStatus.AVAILABLE,
            **_OFF_LOAD,
        )

    def restore_partial(
        self,
        ctx: TenantContext,
        lot: Lot,
        restored_weight: Decimal,
    ) -> Lot:
        """
        Loaded lot partly returned.

        The lot keeps the sold weight and becomes sold; a new available
        child lot carries ``restored_weight``.  Returns the child.
        """
        positive(restored_weight, "restored_weight")
        sold_weight = lot.weight - restored_weight
        positive(sold_weight, "sold_weight")

        row = self._fetch(ctx, lot.lot_id)
        self._transition(
            ctx,
            row,
            expected=LotStatus.LOADED,
            expected_version=lot.version,
            expected_load_id=lot.load_id,
            target=LotStatus.SOLD,
            weight=sold_weight,
            **_OFF_LOAD,
        )
        return self.create_lot(
            ctx,
            lot.product_type,
            restored_weight,
            lot.price,
            created_at=lot.created_at,
            parent_lot_id=lot.lot_id,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch(self, ctx: TenantContext, lot_id: UUID) -> LotModel:
        row = self._session.execute(
            select(LotModel)
            .where(
                LotModel.id == lot_id,
                LotModel.business_id == ctx.business_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise LotNotFoundError(str(lot_id))
        return row

    def _transition(
        self,
        ctx: TenantContext,
        row: LotModel,
        expected: LotStatus,
        expected_version: int,
        target: LotStatus,
        expected_load_id: UUID | None = None,
        **values,
    ) -> None:
        if not expected.can_transition_to(target):
            raise ValueError(f"Illegal lot transition {expected.value} -> {target.value}")

        guard = [
            LotModel.id == row.id,
            LotModel.business_id == ctx.business_id,
            LotModel.status == expected.value,
            LotModel.version == expected_version,
        ]
        if expected_load_id is not None:
            guard.append(LotModel.load_id == expected_load_id)

        result = self._session.execute(
            update(LotModel)
            .where(*guard)
            .values(
                status=target.value,
                version=LotModel.version + 1,
                updated_by_id=ctx.actor_id,
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info(
                "lot_state_conflict",
                extra={
                    "lot_id": str(row.id),
                    "expected_status": expected.value,
                    "expected_version": expected_version,
                },
            )
            raise LotStateConflictError(str(row.id), expected.value, expected_version)

        # The bulk UPDATE bypassed the identity map
        self._session.expire(row)

        logger.debug(
            "lot_transitioned",
            extra={
                "lot_id": str(row.id),
                "from_status": expected.value,
                "to_status": target.value,
                "version": expected_version + 1,
            },
        )
