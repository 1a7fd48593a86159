"""
Module: stock_kernel.models.stock_totals
Responsibility: ORM persistence for the aggregate stock ledger: one row per
    (business, product type) holding bagged / loaded / sold totals.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/.  MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - (business_id, product_type) is UNIQUE.  Rows are created with an
      insert-or-ignore so concurrent first writers converge on one row.
    - Columns are only ever changed by relative increments
      (``column = column + delta``) issued by the ledger service.
    - bagged_total + loaded_total + sold_total changes only when stock is
      bagged; loading and reconciliation move weight between columns.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString, as_utc
from stock_kernel.domain.dtos import StockTotals
from stock_kernel.domain.values import ProductType


class StockTotalsModel(TrackedBase):
    """
    One ledger row.

    Guarantees:
        - Missing rows read as all-zero totals (see LedgerSelector).
    """

    __tablename__ = "stock_totals"

    __table_args__ = (
        UniqueConstraint(
            "business_id",
            "product_type",
            name="uq_stock_totals_business_product",
        ),
    )

    business_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    product_type: Mapped[str] = mapped_column(String(50), nullable=False)

    bagged_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"), server_default="0"
    )
    bagged_bag_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    loaded_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"), server_default="0"
    )
    loaded_bag_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    sold_total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"), server_default="0"
    )
    sold_value: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=Decimal("0"), server_default="0"
    )

    def to_dto(self) -> StockTotals:
        return StockTotals(
            business_id=self.business_id,
            product_type=ProductType(self.product_type),
            bagged_total=self.bagged_total,
            bagged_bag_count=self.bagged_bag_count,
            loaded_total=self.loaded_total,
            loaded_bag_count=self.loaded_bag_count,
            sold_total=self.sold_total,
            sold_value=self.sold_value,
            last_updated=as_utc(self.updated_at),
        )

    def __repr__(self) -> str:
        return (
            f"<StockTotals {self.product_type}: bagged={self.bagged_total} "
            f"loaded={self.loaded_total} sold={self.sold_total}>"
        )
