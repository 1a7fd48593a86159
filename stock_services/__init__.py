"""
stock_services -- transactional orchestration over the stock kernel and engines.

``StockOperations`` is the public entrypoint; the other services are the
steps it composes inside one transaction.
"""

from stock_services.allocation_service import AllocationService
from stock_services.intake_service import IntakeService
from stock_services.load_committer import LoadCommitter
from stock_services.operations import StockOperations
from stock_services.reconciliation_service import ReconciliationService

__all__ = [
    "StockOperations",
    "AllocationService",
    "IntakeService",
    "LoadCommitter",
    "ReconciliationService",
]
