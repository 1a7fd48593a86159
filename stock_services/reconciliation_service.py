"""
stock_services.reconciliation_service -- Apply a load reconciliation.

Responsibility:
    Settle a returned load through the pure ReconciliationEngine, then in
    the caller's transaction: claim (delete) the load, restore exactly the
    remaining weight to available lots, mark the rest sold, apply the
    ledger deltas and write the immutable LoadReport.

Architecture position:
    Services -- orchestration over engines + kernel services.
    Never commits; StockOperations owns the transaction.

Invariants enforced:
    - Validation before mutation: every remaining quantity is checked
      before the load is claimed.
    - Single reconciliation: the load is claimed with a DELETE guarded by
      status "prepared"; rowcount 0 means someone else reconciled it.
      load_reports.load_id is unique as a second line of defence.
    - Weight-exact restoration in reverse consumption order.

Failure modes:
    - LoadNotFoundError: load missing, foreign, or already reconciled.
    - Remaining-quantity ValidationErrors from the engine.
    - LotStateConflictError: a lot on the load is no longer loaded there.

Audit relevance:
    load_reconciled is logged at INFO with the report id and totals.  The
    report keeps the lot-level detail after the load row is gone.
"""

from __future__ import annotations

from collections.abc import Mapping
from uuid import UUID, uuid4

from sqlalchemy import delete
from sqlalchemy.orm import Session

from stock_engines.reconciliation import (
    ReconciliationEngine,
    RestorationAction,
    report_lines,
)
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import Lot, LoadReport, TenantContext
from stock_kernel.domain.values import LoadStatus, LotStatus, ProductType
from stock_kernel.exceptions import LoadNotFoundError, LotStateConflictError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.load import LoadModel
from stock_kernel.models.load_report import LoadReportModel
from stock_kernel.selectors.load_selector import LoadSelector
from stock_kernel.selectors.lot_selector import LotSelector
from stock_kernel.services.ledger_service import StockLedger
from stock_kernel.services.lot_store import LotStore

logger = get_logger("services.reconciliation")


class ReconciliationService:
    """Reconcile prepared loads into load reports."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        engine: ReconciliationEngine | None = None,
    ):
        self._session = session
        self._clock = clock
        self._engine = engine or ReconciliationEngine()
        self._loads = LoadSelector(session)
        self._lot_reader = LotSelector(session)
        self._lots = LotStore(session)
        self._ledger = StockLedger(session, clock)

    def reconcile(
        self,
        ctx: TenantContext,
        load_id: UUID,
        remaining_by_line: Mapping[ProductType | str, object],
    ) -> LoadReport:
        load = self._loads.get(ctx.business_id, load_id)
        result = self._engine.reconcile(load=load, remaining_by_line=remaining_by_line)

        self._claim(ctx, load_id)

        on_load = {lot.lot_id: lot for lot in self._lot_reader.on_load(ctx.business_id, load_id)}
        restored: dict[str, tuple[UUID, ...]] = {}
        for settlement in result.settlements:
            returned: list[UUID] = []
            for action in settlement.restorations:
                lot = self._loaded_lot(on_load, action.lot_id)
                if action.action is RestorationAction.RESTORE:
                    self._lots.restore(ctx, lot)
                    returned.append(lot.lot_id)
                elif action.action is RestorationAction.SPLIT:
                    child = self._lots.restore_partial(ctx, lot, action.restored_weight)
                    returned.append(child.lot_id)
                else:
                    self._lots.mark_sold(ctx, lot)
            restored[settlement.line.line_key] = tuple(returned)

        self._ledger.apply_many(ctx, result.deltas)

        now = self._clock.now()
        lines = report_lines(result, restored)
        model = LoadReportModel(
            id=uuid4(),
            business_id=ctx.business_id,
            load_id=load.load_id,
            assignee_id=load.assignee.assignee_id,
            assignee_name=load.assignee.name,
            lines=[line.to_dict() for line in lines],
            total_loaded_quantity=result.total_loaded_quantity,
            total_loaded_value=result.total_loaded_value,
            total_remaining_quantity=result.total_remaining_quantity,
            total_sold_quantity=result.total_sold_quantity,
            total_sold_value=result.total_sold_value,
            loaded_at=load.created_at,
            reconciled_at=now,
            notes=load.notes,
            created_at=now,
            created_by_id=ctx.actor_id,
        )
        self._session.add(model)
        self._session.flush()

        report = model.to_dto()
        logger.info(
            "load_reconciled",
            extra={
                "load_id": str(load.load_id),
                "report_id": str(report.report_id),
                "sold_quantity": str(report.total_sold_quantity),
                "sold_value": str(report.total_sold_value),
                "remaining_quantity": str(report.total_remaining_quantity),
                "lots_returned": sum(len(ids) for ids in restored.values()),
            },
        )
        return report

    def _claim(self, ctx: TenantContext, load_id: UUID) -> None:
        result = self._session.execute(
            delete(LoadModel)
            .where(
                LoadModel.id == load_id,
                LoadModel.business_id == ctx.business_id,
                LoadModel.status == LoadStatus.PREPARED.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.info("load_claim_lost", extra={"load_id": str(load_id)})
            raise LoadNotFoundError(str(load_id))

    @staticmethod
    def _loaded_lot(on_load: dict[UUID, Lot], lot_id: UUID) -> Lot:
        lot = on_load.get(lot_id)
        if lot is None or lot.status is not LotStatus.LOADED:
            raise LotStateConflictError(str(lot_id), LotStatus.LOADED.value)
        return lot
