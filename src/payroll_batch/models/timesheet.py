"""Timesheet period and time entry models (written by the ingestion collaborator)."""

from __future__ import annotations

from datetime import date, time
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Date, ForeignKey, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_batch.models.base import Base, TimestampMixin


class TimesheetPeriod(Base, TimestampMixin):
    """An uploaded timesheet period."""

    __tablename__ = "timesheet_period"

    period_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    title: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("start_date", "end_date", name="timesheet_period_dates_unique"),
        CheckConstraint("end_date >= start_date", name="timesheet_period_dates_check"),
    )

    entries: Mapped[list[TimeEntry]] = relationship(back_populates="period")


class TimeEntry(Base, TimestampMixin):
    """One punch row for one employee on one day."""

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet_period.period_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_code: Mapped[str | None] = mapped_column(String, nullable=True)
    first_name: Mapped[str | None] = mapped_column(String, nullable=True)
    last_name: Mapped[str | None] = mapped_column(String, nullable=True)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    time_in: Mapped[time | None] = mapped_column(Time, nullable=True)
    time_out: Mapped[time | None] = mapped_column(Time, nullable=True)
    duration: Mapped[str | None] = mapped_column(String, nullable=True)

    period: Mapped[TimesheetPeriod] = relationship(back_populates="entries")
