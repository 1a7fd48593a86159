"""
Module: stock_kernel.models.load
Responsibility: ORM persistence for prepared loads.  A load row exists from
    the moment its lots are committed until reconciliation deletes it.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/.  MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - status is always "prepared".  Reconciliation claims a load by deleting
      it with a status guard, so a load can be reconciled at most once.
    - lines is a JSON list of LoadLine payloads (decimals as strings).
    - total_weight equals the sum of the line quantities.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, as_utc
from stock_kernel.domain.dtos import Assignee, Load, LoadLine
from stock_kernel.domain.values import LoadStatus


class LoadModel(TrackedBase):
    """
    Persistent storage for one prepared load.

    Contract:
        Written once by the load committer inside the same transaction that
        moves its lots to loaded.  Never updated; deleted by reconciliation.
    """

    __tablename__ = "loads"

    __table_args__ = (
        Index("idx_load_business_created", "business_id", "created_at"),
        Index("idx_load_assignee", "assignee_id"),
    )

    business_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LoadStatus.PREPARED.value,
    )

    assignee_id: Mapped[str] = mapped_column(String(100), nullable=False)

    assignee_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    lines: Mapped[list] = mapped_column(JSON, nullable=False)

    total_weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_value: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_lots: Mapped[int] = mapped_column(Integer, nullable=False)

    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_dto(self) -> Load:
        return Load(
            load_id=self.id,
            business_id=self.business_id,
            lines=tuple(LoadLine.from_dict(line) for line in self.lines),
            total_weight=self.total_weight,
            total_value=self.total_value,
            total_lots=self.total_lots,
            status=LoadStatus(self.status),
            assignee=Assignee(self.assignee_id, self.assignee_name),
            notes=self.notes,
            created_at=as_utc(self.created_at),
            created_by_id=self.created_by_id,
        )

    def __repr__(self) -> str:
        return f"<Load {self.id}: {self.total_weight} to {self.assignee_id}>"
