"""
Stock Kernel

The persistence and invariant core of the bagged-stock engine:
- Lots, loads, stock totals and load reports
- Guarded lot state transitions (optimistic concurrency)
- Delta-only aggregate stock ledger
- Immutable reconciliation reports
"""

__version__ = "0.1.0"
