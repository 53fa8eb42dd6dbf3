"""Audited manual overrides of a line item's gross pay."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from payroll_batch.calculators.deductions import calculate_age, calculate_deductions
from payroll_batch.calculators.types import ExemptionFlags, PayFrequency, round_to_cents
from payroll_batch.database import UnitOfWork
from payroll_batch.models import AuditEvent, Employee, PayrollLineItem, PayrollRun
from payroll_batch.services.settings_service import SettingsService
from payroll_batch.services.state_machine import RunStateMachine
from payroll_batch.services.ytd_service import YtdService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

OVERRIDE_ACTION = "payroll_override"

# Components recomputed by an override and shifted in the YTD totals
_RECOMPUTED = (
    "gross_pay",
    "social_contribution_employee",
    "social_contribution_employer",
    "health_benefit_employee",
    "health_benefit_employer",
    "income_levy",
    "net_pay",
)


class LineItemNotFoundError(Exception):
    """Raised when a payroll line item does not exist."""

    def __init__(self, line_item_id: UUID):
        self.line_item_id = line_item_id
        super().__init__(f"Payroll line item {line_item_id} not found")


class RunFinalizedError(Exception):
    """Raised when a finalized run's line item would be modified."""

    def __init__(self, run_id: UUID):
        self.run_id = run_id
        super().__init__(f"Payroll run {run_id} is finalized and cannot be modified")


class OverrideService:
    """Replaces a line item's gross pay and recomputes what depends on it.

    Statutory deductions are recomputed with the employee's exemption flags
    and the line item's pay frequency. Posted loan payments are left alone,
    so net pay keeps the existing loan deduction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def apply_override(
        self,
        line_item_id: UUID,
        new_gross_amount: Decimal,
        reason: str,
        actor: str | None = None,
    ) -> PayrollLineItem:
        """Override gross pay on one line item.

        Raises:
            LineItemNotFoundError: no such line item
            RunFinalizedError: the item's run is finalized (nothing is written)
        """
        new_gross = round_to_cents(Decimal(new_gross_amount))

        async with UnitOfWork(self.session_factory) as uow:
            session = uow.session
            item = await session.get(PayrollLineItem, line_item_id)
            if item is None:
                raise LineItemNotFoundError(line_item_id)

            run = await session.get(PayrollRun, item.run_id)
            if run is None or not RunStateMachine.is_editable(run.status):
                raise RunFinalizedError(item.run_id)

            employee = await session.get(Employee, item.employee_id)
            settings = await SettingsService(session).load()

            before = {name: getattr(item, name) for name in _RECOMPUTED}
            deductions = calculate_deductions(
                new_gross,
                calculate_age(employee.birth_date, run.pay_date) if employee else None,
                settings,
                ExemptionFlags(
                    social_exempt=bool(employee and employee.social_exempt),
                    health_exempt=bool(employee and employee.health_exempt),
                ),
                PayFrequency(item.pay_frequency),
            )

            item.gross_pay = deductions.gross_pay
            item.social_contribution_employee = deductions.social_contribution_employee
            item.social_contribution_employer = deductions.social_contribution_employer
            item.health_benefit_employee = deductions.health_benefit_employee
            item.health_benefit_employer = deductions.health_benefit_employer
            item.income_levy = deductions.income_levy
            item.net_pay = deductions.net_pay_pre_loan - item.loan_deduction

            item.is_override = True
            item.override_amount = new_gross
            item.override_reason = reason
            item.override_by = actor
            item.override_at = datetime.now(timezone.utc)

            after = {name: getattr(item, name) for name in _RECOMPUTED}
            deltas = {name: after[name] - before[name] for name in _RECOMPUTED}
            await YtdService(session).apply_delta(item, run.pay_date.year, deltas)

            self._shift_run_totals(run, deltas)

            session.add(
                AuditEvent(
                    actor=actor,
                    entity_type="payroll_line_item",
                    entity_id=item.line_item_id,
                    action=OVERRIDE_ACTION,
                    before_json={
                        "gross_pay": str(before["gross_pay"]),
                        "net_pay": str(before["net_pay"]),
                    },
                    after_json={
                        "gross_pay": str(after["gross_pay"]),
                        "net_pay": str(after["net_pay"]),
                        "reason": reason,
                    },
                )
            )
            await uow.flush()

        logger.info(
            "Line item %s overridden by %s: gross %s -> %s",
            line_item_id,
            actor or "unknown",
            before["gross_pay"],
            after["gross_pay"],
        )
        return item

    def _shift_run_totals(self, run: PayrollRun, deltas: dict[str, Decimal]) -> None:
        run.total_gross += deltas["gross_pay"]
        run.total_deductions += (
            deltas["social_contribution_employee"]
            + deltas["health_benefit_employee"]
            + deltas["income_levy"]
        )
        run.total_employer_contributions += (
            deltas["social_contribution_employer"] + deltas["health_benefit_employer"]
        )
        run.total_net += deltas["net_pay"]
