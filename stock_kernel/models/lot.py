"""
Module: stock_kernel.models.lot
Responsibility: ORM persistence for lots (physical bags of product).  A lot
    is created by bagging, consumed by a load, and either sold or returned
    to available stock by reconciliation.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/.  MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - weight > 0 and price >= 0 (enforced by the lot store at creation).
    - status is one of available / loaded / sold.
    - version increases by one on every status change.  Guarded updates
      match on (status, version); a mismatch means another transaction
      moved the lot first.
    - A residual child lot keeps its parent's price and created_at, so it
      stays in the same tier and the same position in allocation order.

Failure modes:
    - IntegrityError on missing business_id / product_type (NOT NULL).

Audit relevance:
    parent_lot_id links every split lot back to the bag it was cut from;
    load_id and assignee_id are set only while a lot is loaded; once the
    load is reconciled the load report's lots_used records where it went.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, as_utc
from stock_kernel.domain.dtos import Lot
from stock_kernel.domain.values import LotStatus, ProductType


class LotModel(TrackedBase):
    """
    Persistent storage for one lot.

    Contract:
        Rows are created by the lot store (bagging, residual splits) and
        moved between statuses only through guarded UPDATE statements that
        check the expected status and version.

    Guarantees:
        - (business_id, product_type, status, price) index serves tier
          enumeration and allocation.
        - load_id index serves reconciliation.

    Non-goals:
        - Weight is never edited in place except when a partial consumption
          shrinks a lot to the weight actually loaded.
    """

    __tablename__ = "lots"

    __table_args__ = (
        # Query: available lots of a product type, grouped by price
        Index(
            "idx_lot_business_product_status_price",
            "business_id",
            "product_type",
            "status",
            "price",
        ),
        # Query: lots on a load
        Index("idx_lot_load", "load_id"),
        # Query: allocation order
        Index("idx_lot_created_at", "created_at"),
    )

    business_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    product_type: Mapped[str] = mapped_column(String(50), nullable=False)

    weight: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LotStatus.AVAILABLE.value,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Set on residual / restored children
    parent_lot_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Set while loaded and kept once sold
    load_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    assignee_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    loaded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def to_dto(self) -> Lot:
        return Lot(
            lot_id=self.id,
            business_id=self.business_id,
            product_type=ProductType(self.product_type),
            weight=self.weight,
            price=self.price,
            status=LotStatus(self.status),
            created_at=as_utc(self.created_at),
            version=self.version,
            parent_lot_id=self.parent_lot_id,
            load_id=self.load_id,
            assignee_id=self.assignee_id,
        )

    def __repr__(self) -> str:
        return (
            f"<Lot {self.id}: {self.product_type} {self.weight} @ {self.price} "
            f"[{self.status} v{self.version}]>"
        )
