"""Read-only query selectors for the stock kernel."""

from stock_kernel.selectors.ledger_selector import LedgerSelector
from stock_kernel.selectors.load_selector import LoadSelector
from stock_kernel.selectors.lot_selector import LotSelector
from stock_kernel.selectors.report_selector import ReportSelector

__all__ = [
    "LedgerSelector",
    "LoadSelector",
    "LotSelector",
    "ReportSelector",
]
