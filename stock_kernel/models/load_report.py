"""
Module: stock_kernel.models.load_report
Responsibility: ORM persistence for load reports, the permanent record of a
    reconciled load: what was loaded, what came back and what was sold.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/.  MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Append-only.  before_update / before_delete listeners registered by
      db.immutability reject any change.
    - load_id is UNIQUE: one report per load, even if two reconciliations
      race past the load claim.

Audit relevance:
    The report carries the full lot-level detail of the load, so sold value
    can be traced back to individual bags after the load row is gone.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, as_utc
from stock_kernel.domain.dtos import Assignee, LoadReport, LoadReportLine


class LoadReportModel(TrackedBase):
    """Immutable reconciliation record for one load."""

    __tablename__ = "load_reports"

    __table_args__ = (
        Index("idx_load_report_business_reconciled", "business_id", "reconciled_at"),
    )

    business_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    load_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)

    assignee_id: Mapped[str] = mapped_column(String(100), nullable=False)

    assignee_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    lines: Mapped[list] = mapped_column(JSON, nullable=False)

    total_loaded_quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total_loaded_value: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total_remaining_quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total_sold_quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total_sold_value: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    loaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    reconciled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_dto(self) -> LoadReport:
        return LoadReport(
            report_id=self.id,
            business_id=self.business_id,
            load_id=self.load_id,
            assignee=Assignee(self.assignee_id, self.assignee_name),
            lines=tuple(LoadReportLine.from_dict(line) for line in self.lines),
            total_loaded_quantity=self.total_loaded_quantity,
            total_loaded_value=self.total_loaded_value,
            total_remaining_quantity=self.total_remaining_quantity,
            total_sold_quantity=self.total_sold_quantity,
            total_sold_value=self.total_sold_value,
            loaded_at=as_utc(self.loaded_at),
            reconciled_at=as_utc(self.reconciled_at),
            created_by_id=self.created_by_id,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<LoadReport {self.id}: load={self.load_id} "
            f"sold={self.total_sold_quantity} value={self.total_sold_value}>"
        )
