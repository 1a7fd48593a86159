"""
Module: stock_kernel.db.immutability
Responsibility: ORM-level enforcement that load reports are append-only.
    A LoadReport is the permanent record of what a load sold and what came
    back; once written it is never updated or deleted.
Architecture position: Kernel > DB.  Imports models lazily at registration
    time to avoid import cycles.

Invariants enforced:
    - REPORT_IMMUTABILITY: before_update / before_delete on LoadReportModel
      raise ImmutabilityViolationError.

Failure modes:
    - ImmutabilityViolationError on any ORM flush that would UPDATE or
      DELETE a load report row.  The surrounding transaction rolls back.

Design decision:
    Only ORM unit-of-work operations are intercepted.  Bulk statements
    (``session.execute(update(...))``) bypass mapper events; the kernel never
    issues them against load_reports.
"""

from sqlalchemy import event

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_registered = False


def _block_report_mutation(operation: str):
    def _listener(mapper, connection, target):
        logger.error(
            "immutability_violation_blocked",
            extra={
                "invariant": "report_immutability",
                "entity_type": "LoadReport",
                "entity_id": str(target.id),
                "operation": operation,
            },
        )
        raise ImmutabilityViolationError(
            entity_type="LoadReport",
            entity_id=str(target.id),
            reason=f"load reports cannot be {operation.lower()}d",
        )

    return _listener


_check_report_update = _block_report_mutation("UPDATE")
_check_report_delete = _block_report_mutation("DELETE")


def register_immutability_listeners() -> None:
    """
    Register the load report immutability listeners (idempotent).

    Call after models are imported and before any database operation.
    """
    global _registered
    if _registered:
        return

    from stock_kernel.models.load_report import LoadReportModel

    event.listen(LoadReportModel, "before_update", _check_report_update)
    event.listen(LoadReportModel, "before_delete", _check_report_delete)
    _registered = True


def unregister_immutability_listeners() -> None:
    """Remove the listeners.  FOR TESTING ONLY."""
    global _registered
    if not _registered:
        return

    from stock_kernel.models.load_report import LoadReportModel

    event.remove(LoadReportModel, "before_update", _check_report_update)
    event.remove(LoadReportModel, "before_delete", _check_report_delete)
    _registered = False
