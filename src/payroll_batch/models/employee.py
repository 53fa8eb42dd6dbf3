"""Employee directory model.

Employees are owned by an external directory; the payroll engine only
reads them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_batch.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee master record."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    pay_classification: Mapped[str] = mapped_column(String, nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    annual_salary: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    standard_weekly_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("40")
    )
    pay_frequency: Mapped[str | None] = mapped_column(String, nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    social_exempt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    health_exempt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint(
            "pay_classification IN ('salaried', 'hourly', 'shift_differentiated')",
            name="employee_pay_classification_check",
        ),
        CheckConstraint(
            "pay_frequency IS NULL OR pay_frequency IN "
            "('weekly', 'biweekly', 'semimonthly', 'monthly')",
            name="employee_pay_frequency_check",
        ),
        CheckConstraint(
            "status IN ('active', 'inactive', 'terminated', 'on_leave')",
            name="employee_status_check",
        ),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"

    @property
    def name_key(self) -> str:
        """Name-based match key used when the employee code is unusable."""
        return f"{self.last_name.strip().lower()}_{self.first_name.strip().lower()}"
