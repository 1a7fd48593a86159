"""
Stock Kernel Invariants Contract.

These invariants are structural law.  No EngineConfig value, product type
toggle or allocation ordering may override them.

This module exists solely to declare these invariants explicitly.  The
enforcement is distributed across LotStore, StockLedger, the load
committer, the reconciliation service and db.immutability.
"""

from enum import Enum, unique


@unique
class StockInvariant(str, Enum):
    """Non-configurable invariants enforced by the stock kernel."""

    NO_DOUBLE_ALLOCATION = "no_double_allocation"
    """A lot is consumed by at most one load.  Enforced by LotStore's
    status+version guarded UPDATE."""

    EXACT_ALLOCATION = "exact_allocation"
    """A committed load line consumes exactly its requested weight; a
    partially used lot is split.  Enforced by AllocationPlan and LotStore."""

    ATOMIC_COMMIT = "atomic_commit"
    """Lots, load and ledger change together or not at all.  Enforced by
    session_scope around every operation."""

    WEIGHT_CONSERVATION = "weight_conservation"
    """bagged + loaded + sold changes only when stock is bagged.  Enforced
    by the deltas built in the engines and applied by StockLedger."""

    LEDGER_MATCHES_LOTS = "ledger_matches_lots"
    """Each ledger field equals the matching sum over lots.  Checked by
    LedgerSelector.audit."""

    SINGLE_RECONCILIATION = "single_reconciliation"
    """A load is reconciled at most once.  Enforced by the guarded DELETE
    that claims the load and the unique load_id on load_reports."""

    REPORT_IMMUTABILITY = "report_immutability"
    """Load reports are append-only.  Enforced by ORM listeners
    (stock_kernel.db.immutability)."""

    TENANT_ISOLATION = "tenant_isolation"
    """Every read and write is scoped to one business_id."""


ALL_STOCK_INVARIANTS: frozenset[StockInvariant] = frozenset(StockInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_engines",
    "stock_services",
    "stock_config",
)
