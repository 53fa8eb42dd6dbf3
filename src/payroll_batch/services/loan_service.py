"""Loan creation and per-line-item installment processing."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import select

from payroll_batch.calculators.loans import compute_installment, loan_total_amount
from payroll_batch.calculators.types import LoanClass, LoanDeductionSummary, LoanStatus
from payroll_batch.models import Loan, LoanPayment

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class LoanService:
    """Creates loans and takes installments from payroll line items.

    Every active loan of an employee is paid independently, oldest first.
    Loan rows are read with SELECT ... FOR UPDATE so two runs cannot pay the
    same loan concurrently; an existing (loan, line item) payment makes a
    second attempt a no-op.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_loan(
        self,
        *,
        employee_id: UUID,
        principal: Decimal,
        installment_amount: Decimal,
        start_date: date,
        interest_rate: Decimal = Decimal("0"),
        term_years: Decimal = Decimal("1"),
        loan_class: LoanClass = LoanClass.INTERNAL,
        third_party_name: str | None = None,
    ) -> Loan:
        """Create an active loan with simple interest over its term.

        Third-party loans carry no interest.
        """
        if loan_class == LoanClass.THIRD_PARTY:
            interest_rate = Decimal("0")
        total = loan_total_amount(principal, interest_rate, term_years)

        loan = Loan(
            employee_id=employee_id,
            principal=principal,
            interest_rate=interest_rate,
            total_amount=total,
            installment_amount=installment_amount,
            remaining_balance=total,
            start_date=start_date,
            status=LoanStatus.ACTIVE.value,
            loan_class=LoanClass(loan_class).value,
            third_party_name=third_party_name,
        )
        self.session.add(loan)
        await self.session.flush()
        return loan

    async def active_loans(self, employee_id: UUID) -> list[Loan]:
        """Active loans for an employee, oldest first, locked for update."""
        result = await self.session.execute(
            select(Loan)
            .where(Loan.employee_id == employee_id)
            .where(Loan.status == LoanStatus.ACTIVE.value)
            .order_by(Loan.start_date, Loan.created_at)
            .with_for_update()
        )
        return list(result.scalars().all())

    async def payment_exists(self, loan_id: UUID, line_item_id: UUID) -> bool:
        result = await self.session.execute(
            select(LoanPayment.loan_payment_id)
            .where(LoanPayment.loan_id == loan_id)
            .where(LoanPayment.line_item_id == line_item_id)
        )
        return result.first() is not None

    async def process_payment(
        self, loan: Loan, line_item_id: UUID, payment_date: date
    ) -> LoanPayment | None:
        """Take one installment from a line item for one loan.

        Returns None without writing anything when the loan was already
        paid from this line item or has nothing left to pay.
        """
        if await self.payment_exists(loan.loan_id, line_item_id):
            logger.warning(
                "Loan %s already paid from line item %s; skipping",
                loan.loan_id,
                line_item_id,
            )
            return None

        installment = compute_installment(
            installment_amount=loan.installment_amount,
            remaining_balance=loan.remaining_balance,
            principal=loan.principal,
            total_amount=loan.total_amount,
        )
        if installment is None:
            return None

        payment = LoanPayment(
            loan_id=loan.loan_id,
            line_item_id=line_item_id,
            payment_date=payment_date,
            amount=installment.amount,
            principal_portion=installment.principal_portion,
            interest_portion=installment.interest_portion,
            resulting_balance=installment.resulting_balance,
        )
        self.session.add(payment)

        loan.remaining_balance = installment.resulting_balance
        if installment.completes_loan:
            loan.status = LoanStatus.COMPLETED.value
            logger.info("Loan %s fully repaid", loan.loan_id)

        await self.session.flush()
        return payment

    async def deduct_for_line_item(
        self, employee_id: UUID, line_item_id: UUID, payment_date: date
    ) -> LoanDeductionSummary:
        """Pay every active loan of the employee from one line item."""
        summary = LoanDeductionSummary()
        for loan in await self.active_loans(employee_id):
            payment = await self.process_payment(loan, line_item_id, payment_date)
            if payment is None:
                summary.payments_skipped += 1
                continue
            summary.add(loan.loan_class, payment.amount)
        return summary

    async def payments_for_loan(self, loan_id: UUID) -> list[LoanPayment]:
        result = await self.session.execute(
            select(LoanPayment)
            .where(LoanPayment.loan_id == loan_id)
            .order_by(LoanPayment.payment_date)
        )
        return list(result.scalars().all())
