"""
Module: stock_kernel.selectors.load_selector
Responsibility: Read access to prepared loads.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - A load belonging to another business reads as not found.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import Load
from stock_kernel.exceptions import LoadNotFoundError
from stock_kernel.models.load import LoadModel
from stock_kernel.selectors.base import BaseSelector


class LoadSelector(BaseSelector[LoadModel]):
    """Read-only queries over prepared loads."""

    def get(self, business_id: UUID, load_id: UUID) -> Load:
        """
        Return the prepared load.

        Raises:
            LoadNotFoundError: the load does not exist, belongs to another
                business, or has already been reconciled.
        """
        row = self.session.execute(
            select(LoadModel).where(
                LoadModel.id == load_id,
                LoadModel.business_id == business_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise LoadNotFoundError(str(load_id))
        return row.to_dto()

    def list_prepared(
        self,
        business_id: UUID,
        assignee_id: str | None = None,
    ) -> list[Load]:
        """Prepared loads, newest first."""
        query = select(LoadModel).where(LoadModel.business_id == business_id)
        if assignee_id is not None:
            query = query.where(LoadModel.assignee_id == assignee_id)
        rows = self.session.execute(
            query.order_by(LoadModel.created_at.desc(), LoadModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]
