"""
stock_services.load_committer -- Turn allocation plans into a prepared load.

Responsibility:
    Validate a set of plans, move every planned lot from available to
    loaded, split partially used lots, insert the Load and apply the ledger
    deltas -- all inside the caller's transaction.

Architecture position:
    Services -- orchestration over kernel services (LotStore, StockLedger).
    Never commits; StockOperations owns the transaction.

Invariants enforced:
    - Validation before mutation: empty loads, duplicate product types,
      non-positive quantities and foreign plans are rejected before the
      first write.
    - No double allocation: each lot transition is guarded by the status
      and version the plan observed.  One mismatch aborts the whole load.
    - Per product type: bagged_total -= quantity, loaded_total += quantity,
      loaded_bag_count += lots consumed, bagged_bag_count -= lots consumed
      and += 1 for each residual lot created.

Failure modes:
    - EmptyLoadError, DuplicateLoadLineError, TenantMismatchError,
      InvalidQuantityError: before any write.
    - LotStateConflictError / LotNotFoundError: mid-way; the caller's
      transaction rolls back and nothing is applied.

Audit relevance:
    load_committed is logged at INFO with the load id, assignee, totals
    and residual lot count.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import uuid4

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import (
    AllocationPlan,
    Assignee,
    Load,
    LoadLine,
    StockDelta,
    TenantContext,
)
from stock_kernel.domain.values import ZERO, LoadStatus, ProductType
from stock_kernel.exceptions import (
    DuplicateLoadLineError,
    EmptyLoadError,
    InvalidQuantityError,
    TenantMismatchError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.load import LoadModel
from stock_kernel.services.ledger_service import StockLedger
from stock_kernel.services.lot_store import LotStore

logger = get_logger("services.load_committer")


class LoadCommitter:
    """
    Commit plans as one load.

    Contract:
        ``commit`` either returns the new Load with every effect flushed,
        or raises with nothing of its own flushed that the caller's
        rollback will not undo.
    """

    def __init__(self, session: Session, clock: Clock):
        self._session = session
        self._clock = clock
        self._lots = LotStore(session)
        self._ledger = StockLedger(session, clock)

    def validate(self, ctx: TenantContext, plans: Sequence[AllocationPlan]) -> None:
        if not plans:
            raise EmptyLoadError()
        seen: set[ProductType] = set()
        for plan in plans:
            if plan.business_id != ctx.business_id:
                raise TenantMismatchError(str(ctx.business_id), str(plan.business_id))
            if plan.product_type in seen:
                raise DuplicateLoadLineError(plan.product_type.value)
            seen.add(plan.product_type)
            if plan.quantity <= ZERO:
                raise InvalidQuantityError(
                    "quantity", plan.quantity, "must be greater than zero"
                )
        if sum((plan.quantity for plan in plans), ZERO) <= ZERO:
            raise EmptyLoadError("total weight is zero")

    def commit(
        self,
        ctx: TenantContext,
        plans: Sequence[AllocationPlan],
        assignee: Assignee,
        notes: str = "",
    ) -> Load:
        self.validate(ctx, plans)

        load_id = uuid4()
        now = self._clock.now()
        ordered = sorted(plans, key=lambda p: p.product_type.value)

        deltas: dict[ProductType, StockDelta] = {}
        residual_count = 0
        for plan in ordered:
            residuals = 0
            for use in plan.uses:
                residual = self._lots.load_lot(
                    ctx,
                    use,
                    load_id=load_id,
                    assignee_id=assignee.assignee_id,
                    loaded_at=now,
                )
                if residual is not None:
                    residuals += 1
            residual_count += residuals
            deltas[plan.product_type] = StockDelta(
                bagged_total=-plan.quantity,
                bagged_bag_count=residuals - plan.lots_consumed,
                loaded_total=plan.quantity,
                loaded_bag_count=plan.lots_consumed,
            )

        lines = [LoadLine.from_plan(plan) for plan in ordered]
        model = LoadModel(
            id=load_id,
            business_id=ctx.business_id,
            status=LoadStatus.PREPARED.value,
            assignee_id=assignee.assignee_id,
            assignee_name=assignee.name,
            lines=[line.to_dict() for line in lines],
            total_weight=sum((line.quantity for line in lines), ZERO),
            total_value=sum((line.total_value for line in lines), ZERO),
            total_lots=sum(len(line.lots_used) for line in lines),
            notes=notes,
            created_at=now,
            created_by_id=ctx.actor_id,
        )
        self._session.add(model)
        self._ledger.apply_many(ctx, deltas)
        self._session.flush()

        load = model.to_dto()
        logger.info(
            "load_committed",
            extra={
                "load_id": str(load.load_id),
                "assignee_id": assignee.assignee_id,
                "line_count": len(lines),
                "total_weight": str(load.total_weight),
                "total_value": str(load.total_value),
                "total_lots": load.total_lots,
                "residual_lots": residual_count,
            },
        )
        return load
