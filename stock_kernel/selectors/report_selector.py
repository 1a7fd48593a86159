"""
Module: stock_kernel.selectors.report_selector
Responsibility: Read access to load reports.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import LoadReport
from stock_kernel.exceptions import LoadReportNotFoundError
from stock_kernel.models.load_report import LoadReportModel
from stock_kernel.selectors.base import BaseSelector


class ReportSelector(BaseSelector[LoadReportModel]):
    """Read-only queries over load reports."""

    def get(self, business_id: UUID, report_id: UUID) -> LoadReport:
        row = self.session.execute(
            select(LoadReportModel).where(
                LoadReportModel.id == report_id,
                LoadReportModel.business_id == business_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise LoadReportNotFoundError(str(report_id))
        return row.to_dto()

    def for_load(self, business_id: UUID, load_id: UUID) -> LoadReport | None:
        row = self.session.execute(
            select(LoadReportModel).where(
                LoadReportModel.load_id == load_id,
                LoadReportModel.business_id == business_id,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def list_reports(
        self,
        business_id: UUID,
        since: datetime | None = None,
        until: datetime | None = None,
        assignee_id: str | None = None,
    ) -> list[LoadReport]:
        """Reports in [since, until), most recently reconciled first."""
        query = select(LoadReportModel).where(
            LoadReportModel.business_id == business_id
        )
        if since is not None:
            query = query.where(LoadReportModel.reconciled_at >= since)
        if until is not None:
            query = query.where(LoadReportModel.reconciled_at < until)
        if assignee_id is not None:
            query = query.where(LoadReportModel.assignee_id == assignee_id)
        rows = self.session.execute(
            query.order_by(LoadReportModel.reconciled_at.desc(), LoadReportModel.id)
        ).scalars()
        return [row.to_dto() for row in rows]
