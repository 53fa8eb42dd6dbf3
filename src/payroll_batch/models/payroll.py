"""Payroll run, line item, YTD summary and audit models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_batch.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from payroll_batch.models.employee import Employee
    from payroll_batch.models.timesheet import TimesheetPeriod


# Line item columns that are accumulated year-to-date, each mirrored as ``ytd_<name>``.
YTD_COMPONENTS: tuple[str, ...] = (
    "gross_pay",
    "social_contribution_employee",
    "social_contribution_employer",
    "health_benefit_employee",
    "health_benefit_employer",
    "income_levy",
    "loan_deduction",
    "net_pay",
    "hours_worked",
    "vacation_hours",
    "vacation_amount",
    "leave_hours",
    "leave_amount",
    "holiday_hours",
    "holiday_amount",
)


def _money(default: str = "0") -> Any:
    return mapped_column(Numeric(14, 2), nullable=False, default=Decimal(default))


class YtdTotalsMixin:
    """Year-to-date mirror columns shared by line items and the YTD summary."""

    ytd_gross_pay: Mapped[Decimal] = _money()
    ytd_social_contribution_employee: Mapped[Decimal] = _money()
    ytd_social_contribution_employer: Mapped[Decimal] = _money()
    ytd_health_benefit_employee: Mapped[Decimal] = _money()
    ytd_health_benefit_employer: Mapped[Decimal] = _money()
    ytd_income_levy: Mapped[Decimal] = _money()
    ytd_loan_deduction: Mapped[Decimal] = _money()
    ytd_net_pay: Mapped[Decimal] = _money()
    ytd_hours_worked: Mapped[Decimal] = _money()
    ytd_vacation_hours: Mapped[Decimal] = _money()
    ytd_vacation_amount: Mapped[Decimal] = _money()
    ytd_leave_hours: Mapped[Decimal] = _money()
    ytd_leave_amount: Mapped[Decimal] = _money()
    ytd_holiday_hours: Mapped[Decimal] = _money()
    ytd_holiday_amount: Mapped[Decimal] = _money()


class PayrollRun(Base, TimestampMixin):
    """One execution of the payroll calculation for a period and pay date."""

    __tablename__ = "payroll_run"

    run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet_period.period_id", ondelete="RESTRICT"),
        nullable=False,
    )
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="processing")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)

    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gross: Mapped[Decimal] = _money()
    total_deductions: Mapped[Decimal] = _money()
    total_loan_deductions: Mapped[Decimal] = _money()
    total_employer_contributions: Mapped[Decimal] = _money()
    total_net: Mapped[Decimal] = _money()
    errors_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('processing', 'completed', 'completed_with_errors', 'finalized')",
            name="payroll_run_status_check",
        ),
    )

    period: Mapped[TimesheetPeriod] = relationship()
    line_items: Mapped[list[PayrollLineItem]] = relationship(back_populates="run")


class PayrollLineItem(Base, TimestampMixin, YtdTotalsMixin):
    """One employee's computed payroll record within a run."""

    __tablename__ = "payroll_line_item"

    line_item_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_name: Mapped[str] = mapped_column(String, nullable=False)
    pay_classification: Mapped[str] = mapped_column(String, nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False)

    # Hours
    hours_worked: Mapped[Decimal] = _money()
    regular_hours: Mapped[Decimal] = _money()
    overtime_hours: Mapped[Decimal] = _money()
    vacation_hours: Mapped[Decimal] = _money()
    leave_hours: Mapped[Decimal] = _money()
    holiday_hours: Mapped[Decimal] = _money()

    # Earnings
    base_pay: Mapped[Decimal] = _money()
    overtime_amount: Mapped[Decimal] = _money()
    vacation_amount: Mapped[Decimal] = _money()
    leave_amount: Mapped[Decimal] = _money()
    leave_type: Mapped[str | None] = mapped_column(String, nullable=True)
    holiday_amount: Mapped[Decimal] = _money()
    holiday_names: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    gross_pay: Mapped[Decimal] = _money()

    # Statutory deductions
    social_contribution_employee: Mapped[Decimal] = _money()
    social_contribution_employer: Mapped[Decimal] = _money()
    health_benefit_employee: Mapped[Decimal] = _money()
    health_benefit_employer: Mapped[Decimal] = _money()
    income_levy: Mapped[Decimal] = _money()

    # Loans
    loan_deduction: Mapped[Decimal] = _money()
    internal_loan_deduction: Mapped[Decimal] = _money()
    third_party_loan_deduction: Mapped[Decimal] = _money()

    # Not clamped: deductions may exceed gross pay.
    net_pay: Mapped[Decimal] = _money()

    # Override
    is_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    override_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    override_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    override_by: Mapped[str | None] = mapped_column(String, nullable=True)
    override_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("run_id", "employee_id", name="payroll_line_item_run_employee_unique"),
    )

    run: Mapped[PayrollRun] = relationship(back_populates="line_items")
    employee: Mapped[Employee] = relationship()

    @property
    def statutory_deductions(self) -> Decimal:
        """Sum of employee-side statutory deductions."""
        return (
            self.social_contribution_employee
            + self.health_benefit_employee
            + self.income_levy
        )


class EmployeeYtdSummary(Base, TimestampMixin, YtdTotalsMixin):
    """Denormalized per-employee, per-calendar-year YTD totals."""

    __tablename__ = "employee_ytd_summary"

    ytd_summary_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.run_id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "year", name="employee_ytd_summary_employee_year_unique"),
    )


class AuditEvent(Base, TimestampMixin):
    """Append-only audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    before_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    after_json: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
