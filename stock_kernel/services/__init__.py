"""Write-side kernel services.  Each flushes within the caller's transaction."""

from stock_kernel.services.ledger_service import StockLedger
from stock_kernel.services.lot_store import LotStore

__all__ = ["StockLedger", "LotStore"]
