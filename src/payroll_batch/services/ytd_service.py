"""Year-to-date accumulation for payroll line items."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import func, select

from payroll_batch.calculators.types import ZERO
from payroll_batch.models import YTD_COMPONENTS, EmployeeYtdSummary, PayrollLineItem, PayrollRun
from payroll_batch.services.state_machine import RunStateMachine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

POSTED_STATUSES = tuple(s.value for s in RunStateMachine.POSTED)


class YtdService:
    """Computes and stores year-to-date totals.

    Totals come from line items of posted runs (completed,
    completed_with_errors, finalized). A line item's ytd_* mirrors count
    posted runs from January 1 of the pay-date year through the pay date.
    The yearly summary counts every posted run of that calendar year, so a
    run calculated out of pay-date order never drops a later run. The run
    being calculated is still processing, so its own items are never
    counted twice.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def prior_totals(
        self,
        employee_id: UUID,
        pay_date: date,
        exclude_run_id: UUID | None = None,
    ) -> dict[str, Decimal]:
        return await self._posted_sums(
            employee_id, date(pay_date.year, 1, 1), pay_date, exclude_run_id
        )

    async def year_totals(
        self,
        employee_id: UUID,
        year: int,
        exclude_run_id: UUID | None = None,
    ) -> dict[str, Decimal]:
        return await self._posted_sums(
            employee_id, date(year, 1, 1), date(year, 12, 31), exclude_run_id
        )

    async def _posted_sums(
        self,
        employee_id: UUID,
        start: date,
        end: date,
        exclude_run_id: UUID | None,
    ) -> dict[str, Decimal]:
        columns = [
            func.coalesce(func.sum(getattr(PayrollLineItem, name)), 0).label(name)
            for name in YTD_COMPONENTS
        ]
        stmt = (
            select(*columns)
            .join(PayrollRun, PayrollRun.run_id == PayrollLineItem.run_id)
            .where(PayrollLineItem.employee_id == employee_id)
            .where(PayrollRun.status.in_(POSTED_STATUSES))
            .where(PayrollRun.pay_date >= start)
            .where(PayrollRun.pay_date <= end)
        )
        if exclude_run_id is not None:
            stmt = stmt.where(PayrollRun.run_id != exclude_run_id)

        row = (await self.session.execute(stmt)).one()
        return {name: Decimal(str(getattr(row, name) or 0)) for name in YTD_COMPONENTS}

    async def accumulate(self, item: PayrollLineItem, pay_date: date) -> EmployeeYtdSummary:
        """Write ytd_* mirrors on the line item and upsert the summary row."""
        current = {name: getattr(item, name) or ZERO for name in YTD_COMPONENTS}

        prior = await self.prior_totals(item.employee_id, pay_date, exclude_run_id=item.run_id)
        for name in YTD_COMPONENTS:
            setattr(item, f"ytd_{name}", prior[name] + current[name])

        year = await self.year_totals(item.employee_id, pay_date.year, exclude_run_id=item.run_id)
        totals = {name: year[name] + current[name] for name in YTD_COMPONENTS}
        summary = await self.upsert_summary(item.employee_id, pay_date.year, totals, item.run_id)
        await self.session.flush()
        return summary

    async def apply_delta(
        self, item: PayrollLineItem, year: int, deltas: dict[str, Decimal]
    ) -> EmployeeYtdSummary | None:
        """Shift the item's mirrors and the stored summary by component deltas."""
        for name, delta in deltas.items():
            attr = f"ytd_{name}"
            setattr(item, attr, (getattr(item, attr) or ZERO) + delta)

        summary = await self.get_summary(item.employee_id, year)
        if summary is None:
            logger.warning(
                "No YTD summary for employee %s in %d; line item mirrors only",
                item.employee_id,
                year,
            )
            return None
        for name, delta in deltas.items():
            attr = f"ytd_{name}"
            setattr(summary, attr, (getattr(summary, attr) or ZERO) + delta)
        await self.session.flush()
        return summary

    async def get_summary(self, employee_id: UUID, year: int) -> EmployeeYtdSummary | None:
        result = await self.session.execute(
            select(EmployeeYtdSummary)
            .where(EmployeeYtdSummary.employee_id == employee_id)
            .where(EmployeeYtdSummary.year == year)
        )
        return result.scalar_one_or_none()

    async def upsert_summary(
        self,
        employee_id: UUID,
        year: int,
        totals: dict[str, Decimal],
        run_id: UUID | None = None,
    ) -> EmployeeYtdSummary:
        summary = await self.get_summary(employee_id, year)
        if summary is None:
            summary = EmployeeYtdSummary(employee_id=employee_id, year=year)
            self.session.add(summary)
        for name, value in totals.items():
            setattr(summary, f"ytd_{name}", value)
        summary.last_run_id = run_id
        return summary
