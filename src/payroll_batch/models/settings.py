"""Stored configuration maintained by the settings collaborator."""

from __future__ import annotations

from datetime import time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Integer, Numeric, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column

from payroll_batch.models.base import Base, TimestampMixin


class PayrollSettingsRecord(Base, TimestampMixin):
    """Statutory rates, caps, age bands and shift rates (single row)."""

    __tablename__ = "payroll_settings"

    payroll_settings_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)

    social_employee_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    social_employer_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    social_monthly_cap: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    health_employee_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    health_employer_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    health_senior_employee_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    levy_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    levy_high_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    levy_threshold: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    levy_exemption: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    retirement_age: Mapped[int] = mapped_column(Integer, nullable=False)
    health_senior_age: Mapped[int] = mapped_column(Integer, nullable=False)
    health_max_age: Mapped[int] = mapped_column(Integer, nullable=False)

    shift_day_weekday_rate: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    shift_day_weekend_rate: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    shift_night_rate: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    shift_day_start: Mapped[time] = mapped_column(Time, nullable=False)
    shift_day_end: Mapped[time] = mapped_column(Time, nullable=False)


class SystemSetting(Base, TimestampMixin):
    """Free-form key/value switch such as ``paid_public_holidays_enabled``."""

    __tablename__ = "system_setting"

    setting_name: Mapped[str] = mapped_column(String, primary_key=True)
    setting_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
