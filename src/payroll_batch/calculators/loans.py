"""Loan arithmetic: simple-interest totals and installment splitting."""

from __future__ import annotations

from decimal import Decimal

from payroll_batch.calculators.types import ZERO, LoanInstallment, round_to_cents

HUNDRED = Decimal(100)


def loan_total_amount(
    principal: Decimal, interest_rate: Decimal, term_years: Decimal
) -> Decimal:
    """Principal plus simple interest over the term.

    interest_rate is a yearly percentage; term_years may be fractional.
    """
    interest = principal * interest_rate / HUNDRED * term_years
    return round_to_cents(principal + interest)


def compute_installment(
    *,
    installment_amount: Decimal,
    remaining_balance: Decimal,
    principal: Decimal,
    total_amount: Decimal,
) -> LoanInstallment | None:
    """Split the next installment into principal and interest.

    The payment is capped at the remaining balance so the balance never
    goes negative. Returns None when nothing is owed.
    """
    if remaining_balance <= 0 or installment_amount <= 0:
        return None

    amount = round_to_cents(min(installment_amount, remaining_balance))
    if total_amount > 0:
        principal_portion = round_to_cents(amount * principal / total_amount)
    else:
        principal_portion = amount
    interest_portion = amount - principal_portion

    return LoanInstallment(
        amount=amount,
        principal_portion=principal_portion,
        interest_portion=interest_portion,
        resulting_balance=max(ZERO, remaining_balance - amount),
    )
