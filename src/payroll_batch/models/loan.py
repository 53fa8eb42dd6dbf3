"""Employee loan and loan payment models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_batch.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from payroll_batch.models.payroll import PayrollLineItem


class Loan(Base, TimestampMixin):
    """Employee loan repaid by payroll installments.

    ``remaining_balance`` and ``status`` are only changed by the loan
    amortization processor.
    """

    __tablename__ = "loan"

    loan_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    principal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 3), nullable=False, default=Decimal("0")
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    loan_class: Mapped[str] = mapped_column(String, nullable=False, default="internal")
    third_party_name: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'completed', 'cancelled', 'paused')",
            name="loan_status_check",
        ),
        CheckConstraint(
            "loan_class IN ('internal', 'third_party')",
            name="loan_class_check",
        ),
        CheckConstraint("remaining_balance >= 0", name="loan_remaining_balance_check"),
        CheckConstraint("total_amount > 0", name="loan_total_amount_check"),
    )

    payments: Mapped[list[LoanPayment]] = relationship(back_populates="loan")


class LoanPayment(Base, TimestampMixin):
    """Append-only record of one installment taken from one line item."""

    __tablename__ = "loan_payment"

    loan_payment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    loan_id: Mapped[UUID] = mapped_column(
        ForeignKey("loan.loan_id", ondelete="RESTRICT"),
        nullable=False,
    )
    line_item_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_line_item.line_item_id", ondelete="RESTRICT"),
        nullable=False,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    principal_portion: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    interest_portion: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    resulting_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("loan_id", "line_item_id", name="loan_payment_loan_item_unique"),
        CheckConstraint("amount >= 0", name="loan_payment_amount_check"),
    )

    loan: Mapped[Loan] = relationship(back_populates="payments")
    line_item: Mapped[PayrollLineItem] = relationship()
