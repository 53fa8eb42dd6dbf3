"""Loads absences and public holidays for an employee's pay period."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select

from payroll_batch.calculators.absence import (
    APPROVED,
    consumable_entries,
    summarize_holidays,
    summarize_leave,
    summarize_vacation,
)
from payroll_batch.calculators.types import AbsenceSummary, HolidaySummary, PayrollSettings
from payroll_batch.models import Employee, LeaveEntry, PublicHoliday, VacationEntry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class AbsenceService:
    """Period-scoped vacation, leave and holiday lookups.

    Selection rules: approved entries only, overlapping the period in any
    way. Hours are taken in full even when an entry extends beyond the
    period boundaries.
    """

    def __init__(self, session: AsyncSession, settings: PayrollSettings):
        self.session = session
        self.settings = settings

    async def vacation_for_period(
        self, employee: Employee, period_start: date, period_end: date
    ) -> AbsenceSummary:
        entries = await self._approved_entries(
            VacationEntry, employee.employee_id, period_start, period_end
        )
        return summarize_vacation(entries, employee, self.settings)

    async def leave_for_period(
        self, employee: Employee, period_start: date, period_end: date
    ) -> AbsenceSummary:
        entries = await self._approved_entries(
            LeaveEntry, employee.employee_id, period_start, period_end
        )
        return summarize_leave(entries, employee, self.settings)

    async def holidays_for_period(
        self, employee: Employee, period_start: date, period_end: date
    ) -> HolidaySummary:
        if not self.settings.holiday_pay_enabled:
            return HolidaySummary()

        result = await self.session.execute(
            select(PublicHoliday)
            .where(PublicHoliday.holiday_date >= period_start)
            .where(PublicHoliday.holiday_date <= period_end)
            .where(PublicHoliday.paid.is_(True))
            .order_by(PublicHoliday.holiday_date)
        )
        holidays = list(result.scalars().all())
        summary = summarize_holidays(
            holidays, employee, self.settings, period_start, period_end
        )
        if summary.holiday_names:
            logger.debug(
                "%s: %d paid holiday(s) in period",
                employee.full_name,
                len(summary.holiday_names),
            )
        return summary

    async def _approved_entries(
        self,
        model: type[VacationEntry] | type[LeaveEntry],
        employee_id: UUID,
        period_start: date,
        period_end: date,
    ) -> list:
        result = await self.session.execute(
            select(model)
            .where(model.employee_id == employee_id)
            .where(model.status == APPROVED)
            .where(model.start_date <= period_end)
            .where(model.end_date >= period_start)
            .order_by(model.start_date)
        )
        return consumable_entries(result.scalars().all(), period_start, period_end)
