"""Vacation, leave and public holiday models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_batch.models.base import Base, TimestampMixin

ABSENCE_STATUS_CHECK = "status IN ('pending', 'approved', 'rejected', 'cancelled')"


class VacationEntry(Base, TimestampMixin):
    """Vacation request covering a date range."""

    __tablename__ = "vacation_entry"

    vacation_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    hourly_rate_override: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint(ABSENCE_STATUS_CHECK, name="vacation_entry_status_check"),
        CheckConstraint("end_date >= start_date", name="vacation_entry_dates_check"),
    )


class LeaveEntry(Base, TimestampMixin):
    """Sick, maternity or other leave paid at a percentage of the normal rate."""

    __tablename__ = "leave_entry"

    leave_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[str] = mapped_column(String, nullable=False, default="sick")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    hourly_rate_override: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    payment_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("100")
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint(ABSENCE_STATUS_CHECK, name="leave_entry_status_check"),
        CheckConstraint("end_date >= start_date", name="leave_entry_dates_check"),
        CheckConstraint(
            "payment_percentage >= 0 AND payment_percentage <= 100",
            name="leave_entry_payment_percentage_check",
        ),
    )


class PublicHoliday(Base, TimestampMixin):
    """Calendar holiday reference data."""

    __tablename__ = "public_holiday"

    public_holiday_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
