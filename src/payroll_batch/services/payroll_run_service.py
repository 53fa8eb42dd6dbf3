"""Payroll run service - orchestrates one payroll calculation end to end."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from payroll_batch.calculators.deductions import calculate_age, calculate_deductions
from payroll_batch.calculators.pay_models import calculate_gross_pay
from payroll_batch.calculators.time_aggregator import aggregate_time_entries
from payroll_batch.calculators.types import (
    ZERO,
    AbsenceSummary,
    EmployeeError,
    EmployeeHours,
    ExemptionFlags,
    HolidaySummary,
    PayClassification,
    PayFrequency,
    PayInputs,
    PayrollSettings,
)
from payroll_batch.config import get_settings
from payroll_batch.database import UnitOfWork
from payroll_batch.models import (
    AuditEvent,
    Employee,
    EmployeeYtdSummary,
    PayrollLineItem,
    PayrollRun,
    TimeEntry,
    TimesheetPeriod,
)
from payroll_batch.services.absence_service import AbsenceService
from payroll_batch.services.loan_service import LoanService
from payroll_batch.services.settings_service import SettingsService
from payroll_batch.services.state_machine import (
    InvalidTransitionError,
    RunStateMachine,
    RunStatus,
)
from payroll_batch.services.ytd_service import YtdService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

_Summary = TypeVar("_Summary", AbsenceSummary, HolidaySummary)


class PeriodNotFoundError(Exception):
    """Raised when a payroll run references a missing timesheet period."""

    def __init__(self, period_id: UUID):
        self.period_id = period_id
        super().__init__(f"Timesheet period {period_id} not found")


class RunNotFoundError(Exception):
    """Raised when a payroll run does not exist."""

    def __init__(self, run_id: UUID):
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} not found")


@dataclass
class RunAccumulator:
    """Line items and per-employee errors collected while a run is processed."""

    line_items: list[PayrollLineItem] = field(default_factory=list)
    errors: list[EmployeeError] = field(default_factory=list)
    total_gross: Decimal = ZERO
    total_deductions: Decimal = ZERO
    total_loan_deductions: Decimal = ZERO
    total_employer_contributions: Decimal = ZERO
    total_net: Decimal = ZERO

    def add_item(self, item: PayrollLineItem) -> None:
        self.line_items.append(item)
        self.total_gross += item.gross_pay
        self.total_deductions += item.statutory_deductions
        self.total_loan_deductions += item.loan_deduction
        self.total_employer_contributions += (
            item.social_contribution_employer + item.health_benefit_employer
        )
        self.total_net += item.net_pay

    def add_error(self, error: EmployeeError) -> None:
        logger.warning("Payroll error for %s: %s", error.employee_name, error.error)
        self.errors.append(error)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def apply_to(self, run: PayrollRun) -> None:
        """Copy run-level totals onto the run row."""
        run.total_employees = len(self.line_items)
        run.error_count = len(self.errors)
        run.total_gross = self.total_gross
        run.total_deductions = self.total_deductions
        run.total_loan_deductions = self.total_loan_deductions
        run.total_employer_contributions = self.total_employer_contributions
        run.total_net = self.total_net
        run.errors_json = [e.to_dict() for e in self.errors]


@dataclass(frozen=True)
class PayrollCalculationResult:
    """Outcome of calculate_payroll."""

    run_id: UUID
    status: RunStatus
    total_employees: int
    line_items: list[PayrollLineItem]
    errors: list[EmployeeError]

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "status": self.status.value,
            "total_employees": self.total_employees,
            "line_item_ids": [str(i.line_item_id) for i in self.line_items],
            "errors": [e.to_dict() for e in self.errors],
        }


def _configuration_problem(employee: Employee) -> str | None:
    """Describe missing pay data that makes an employee uncalculable."""
    classification = employee.pay_classification
    if classification == PayClassification.SALARIED and not employee.annual_salary:
        return "Salaried employee has no annual salary"
    if classification == PayClassification.HOURLY and not employee.hourly_rate:
        return "Hourly employee has no hourly rate"
    return None


class PayrollRunService:
    """Service for payroll runs.

    Operations:
    - calculate_payroll: aggregate a period's time, price it and persist a run
    - finalize_run: close a completed run to further edits
    - get_run / list_runs / list_line_items / get_ytd_summary: queries

    Every operation runs inside its own UnitOfWork. calculate_payroll writes
    the run, its line items, loan payments and YTD summaries in one
    transaction; any exception leaves no trace of the run.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def calculate_payroll(
        self,
        period_id: UUID,
        pay_date: date,
        pay_frequency_default: PayFrequency | str | None = None,
        created_by: str | None = None,
    ) -> PayrollCalculationResult:
        """Calculate payroll for every employee with time in the period.

        Args:
            period_id: Timesheet period to process
            pay_date: Pay date of the run; drives ages and YTD windows
            pay_frequency_default: Frequency for employees without one
            created_by: Actor recorded on the run

        Raises:
            PeriodNotFoundError: the period does not exist (nothing is written)
        """
        default_frequency = PayFrequency(
            pay_frequency_default or get_settings().default_pay_frequency
        )

        async with UnitOfWork(self.session_factory) as uow:
            session = uow.session
            period = await session.get(TimesheetPeriod, period_id)
            if period is None:
                raise PeriodNotFoundError(period_id)

            settings = await SettingsService(session).load()

            run = PayrollRun(
                run_id=uuid4(),
                period_id=period.period_id,
                pay_date=pay_date,
                status=RunStatus.PROCESSING.value,
                created_by=created_by,
                finalized_at=None,
            )
            session.add(run)
            await uow.flush()
            logger.info(
                "Payroll run %s started for period %s (%s to %s)",
                run.run_id,
                period.title,
                period.start_date,
                period.end_date,
            )

            entries = await self._time_entries(session, period.period_id)
            employees = await self._employees(session)
            aggregation = aggregate_time_entries(entries, employees)

            acc = RunAccumulator()
            for error in aggregation.errors:
                acc.add_error(error)

            by_id = {e.employee_id: e for e in employees}
            context = _RunContext(
                session=session,
                run=run,
                period=period,
                settings=settings,
                default_frequency=default_frequency,
                absences=AbsenceService(session, settings),
                loans=LoanService(session),
                ytd=YtdService(session),
                acc=acc,
            )
            for hours in aggregation.employees:
                await self._process_employee(context, by_id[hours.employee_id], hours)

            status = RunStateMachine.completion_status(len(acc.errors))
            RunStateMachine.validate_transition(run.status, status.value)
            acc.apply_to(run)
            run.status = status.value
            await uow.flush()

            result = PayrollCalculationResult(
                run_id=run.run_id,
                status=status,
                total_employees=len(acc.line_items),
                line_items=list(acc.line_items),
                errors=list(acc.errors),
            )

        logger.info(
            "Payroll run %s %s: %d employee(s), %d error(s), gross %s",
            result.run_id,
            result.status.value,
            result.total_employees,
            len(result.errors),
            acc.total_gross,
        )
        return result

    async def _process_employee(
        self, ctx: _RunContext, employee: Employee, hours: EmployeeHours
    ) -> None:
        problem = _configuration_problem(employee)
        if problem is not None:
            ctx.acc.add_error(
                EmployeeError(
                    employee_name=employee.full_name,
                    employee_id=employee.employee_id,
                    error=problem,
                )
            )
            return

        period = ctx.period
        frequency = PayFrequency(employee.pay_frequency or ctx.default_frequency)

        vacation = await self._lookup(
            ctx, employee, "vacation", AbsenceSummary(),
            ctx.absences.vacation_for_period(employee, period.start_date, period.end_date),
        )
        leave = await self._lookup(
            ctx, employee, "leave", AbsenceSummary(),
            ctx.absences.leave_for_period(employee, period.start_date, period.end_date),
        )
        holidays = await self._lookup(
            ctx, employee, "holiday", HolidaySummary(),
            ctx.absences.holidays_for_period(employee, period.start_date, period.end_date),
        )

        gross = calculate_gross_pay(
            PayInputs(
                classification=PayClassification(employee.pay_classification),
                frequency=frequency,
                worked_hours=hours.total_hours,
                standard_weekly_hours=employee.standard_weekly_hours,
                hourly_rate=employee.hourly_rate,
                annual_salary=employee.annual_salary,
                daily_hours=tuple(hours.daily_hours),
                vacation=vacation,
                leave=leave,
                holidays=holidays,
            ),
            ctx.settings,
        )
        deductions = calculate_deductions(
            gross.gross_pay,
            calculate_age(employee.birth_date, ctx.run.pay_date),
            ctx.settings,
            ExemptionFlags(
                social_exempt=employee.social_exempt,
                health_exempt=employee.health_exempt,
            ),
            frequency,
        )

        item = PayrollLineItem(
            line_item_id=uuid4(),
            run_id=ctx.run.run_id,
            employee_id=employee.employee_id,
            employee_name=employee.full_name,
            pay_classification=gross.classification.value,
            pay_frequency=frequency.value,
            hours_worked=gross.hours_worked,
            regular_hours=gross.regular_hours,
            overtime_hours=gross.overtime_hours,
            vacation_hours=gross.vacation_hours,
            leave_hours=gross.leave_hours,
            holiday_hours=gross.holiday_hours,
            base_pay=gross.base_pay,
            overtime_amount=gross.overtime_amount,
            vacation_amount=gross.vacation_amount,
            leave_amount=gross.leave_amount,
            leave_type=gross.leave_type,
            holiday_amount=gross.holiday_amount,
            holiday_names=list(holidays.holiday_names),
            gross_pay=gross.gross_pay,
            social_contribution_employee=deductions.social_contribution_employee,
            social_contribution_employer=deductions.social_contribution_employer,
            health_benefit_employee=deductions.health_benefit_employee,
            health_benefit_employer=deductions.health_benefit_employer,
            income_levy=deductions.income_levy,
            loan_deduction=ZERO,
            internal_loan_deduction=ZERO,
            third_party_loan_deduction=ZERO,
            net_pay=deductions.net_pay_pre_loan,
            is_override=False,
            override_amount=None,
            override_reason=None,
            override_by=None,
            override_at=None,
        )
        ctx.session.add(item)
        await ctx.session.flush()

        loans = await ctx.loans.deduct_for_line_item(
            employee.employee_id, item.line_item_id, ctx.run.pay_date
        )
        item.loan_deduction = loans.total
        item.internal_loan_deduction = loans.internal
        item.third_party_loan_deduction = loans.third_party
        item.net_pay = deductions.net_pay_pre_loan - loans.total
        if item.net_pay < 0:
            logger.warning(
                "%s has negative net pay %s for run %s",
                employee.full_name,
                item.net_pay,
                ctx.run.run_id,
            )

        await ctx.ytd.accumulate(item, ctx.run.pay_date)
        ctx.acc.add_item(item)

    async def _lookup(
        self,
        ctx: _RunContext,
        employee: Employee,
        kind: str,
        fallback: _Summary,
        lookup: Awaitable[_Summary],
    ) -> _Summary:
        """Await an absence lookup, recording a failure as a per-employee error.

        The lookup runs inside a SAVEPOINT so a failed statement leaves the
        run's transaction usable for the remaining writes.
        """
        try:
            async with ctx.session.begin_nested():
                return await lookup
        except (SQLAlchemyError, ArithmeticError, ValueError, TypeError) as e:
            logger.exception("Failed to process %s data for %s", kind, employee.full_name)
            ctx.acc.add_error(
                EmployeeError(
                    employee_name=employee.full_name,
                    employee_id=employee.employee_id,
                    error=f"Failed to process {kind} data: {e}",
                )
            )
            return fallback

    async def _time_entries(self, session: AsyncSession, period_id: UUID) -> list[TimeEntry]:
        result = await session.execute(
            select(TimeEntry)
            .where(TimeEntry.period_id == period_id)
            .order_by(TimeEntry.work_date, TimeEntry.time_in)
        )
        return list(result.scalars().all())

    async def _employees(self, session: AsyncSession) -> list[Employee]:
        result = await session.execute(select(Employee))
        return list(result.scalars().all())

    async def finalize_run(self, run_id: UUID, actor: str | None = None) -> PayrollRun:
        """Move a completed run to finalized.

        The status change is a conditional update, so two concurrent
        finalizations cannot both succeed.

        Raises:
            RunNotFoundError: the run does not exist
            InvalidTransitionError: the run is not completed
        """
        async with UnitOfWork(self.session_factory) as uow:
            session = uow.session
            run = await session.get(PayrollRun, run_id)
            if run is None:
                raise RunNotFoundError(run_id)
            from_status = run.status
            RunStateMachine.validate_transition(from_status, RunStatus.FINALIZED.value)

            finalized_at = datetime.now(timezone.utc)
            result = await session.execute(
                update(PayrollRun)
                .where(PayrollRun.run_id == run_id)
                .where(PayrollRun.status == from_status)
                .values(status=RunStatus.FINALIZED.value, finalized_at=finalized_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidTransitionError(
                    from_status, RunStatus.FINALIZED.value, "run status changed concurrently"
                )

            session.add(
                AuditEvent(
                    actor=actor,
                    entity_type="payroll_run",
                    entity_id=run_id,
                    action=f"status_change:{from_status}:{RunStatus.FINALIZED.value}",
                    before_json={"status": from_status},
                    after_json={
                        "status": RunStatus.FINALIZED.value,
                        "finalized_at": finalized_at.isoformat(),
                    },
                )
            )
            await uow.flush()
            await session.refresh(run)

        logger.info("Payroll run %s finalized", run_id)
        return run

    async def get_run(self, run_id: UUID) -> PayrollRun:
        async with UnitOfWork(self.session_factory) as uow:
            run = await uow.session.get(PayrollRun, run_id)
            if run is None:
                raise RunNotFoundError(run_id)
            return run

    async def list_runs(self, period_id: UUID | None = None) -> list[PayrollRun]:
        """Runs newest pay date first, optionally for one period."""
        stmt = select(PayrollRun).order_by(
            PayrollRun.pay_date.desc(), PayrollRun.created_at.desc()
        )
        if period_id is not None:
            stmt = stmt.where(PayrollRun.period_id == period_id)
        async with UnitOfWork(self.session_factory) as uow:
            result = await uow.session.execute(stmt)
            return list(result.scalars().all())

    async def list_line_items(
        self,
        run_id: UUID | None = None,
        employee_id: UUID | None = None,
    ) -> list[PayrollLineItem]:
        stmt = select(PayrollLineItem).order_by(PayrollLineItem.employee_name)
        if run_id is not None:
            stmt = stmt.where(PayrollLineItem.run_id == run_id)
        if employee_id is not None:
            stmt = stmt.where(PayrollLineItem.employee_id == employee_id)
        async with UnitOfWork(self.session_factory) as uow:
            result = await uow.session.execute(stmt)
            return list(result.scalars().all())

    async def get_ytd_summary(self, employee_id: UUID, year: int) -> EmployeeYtdSummary | None:
        async with UnitOfWork(self.session_factory) as uow:
            return await YtdService(uow.session).get_summary(employee_id, year)


@dataclass
class _RunContext:
    """Collaborators shared by every employee of one run."""

    session: AsyncSession
    run: PayrollRun
    period: TimesheetPeriod
    settings: PayrollSettings
    default_frequency: PayFrequency
    absences: AbsenceService
    loans: LoanService
    ytd: YtdService
    acc: RunAccumulator
