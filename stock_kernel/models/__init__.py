"""ORM models for the stock kernel."""

from stock_kernel.models.load import LoadModel
from stock_kernel.models.load_report import LoadReportModel
from stock_kernel.models.lot import LotModel
from stock_kernel.models.stock_totals import StockTotalsModel

__all__ = [
    "LotModel",
    "LoadModel",
    "StockTotalsModel",
    "LoadReportModel",
]
