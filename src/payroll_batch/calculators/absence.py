"""Vacation, leave and public holiday pay for a period."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable, Sequence, TypeVar

from payroll_batch.calculators.types import (
    ZERO,
    AbsenceSummary,
    HolidaySummary,
    PayClassification,
    PayrollSettings,
)

if TYPE_CHECKING:
    from payroll_batch.models import Employee, LeaveEntry, PublicHoliday, VacationEntry

    _Absence = TypeVar("_Absence", VacationEntry, LeaveEntry)
else:
    _Absence = TypeVar("_Absence")

APPROVED = "approved"
WEEKS_PER_YEAR = Decimal(52)
HUNDRED = Decimal(100)


def overlaps_period(
    start: date, end: date, period_start: date, period_end: date
) -> bool:
    """True when [start, end] shares at least one day with the period.

    Covers entries fully inside the period, spanning its start, spanning
    its end, and spanning the whole period.
    """
    return start <= period_end and end >= period_start


def consumable_entries(
    entries: Iterable[_Absence], period_start: date, period_end: date
) -> list[_Absence]:
    """Approved entries overlapping the period, oldest first."""
    selected = [
        e
        for e in entries
        if e.status == APPROVED
        and overlaps_period(e.start_date, e.end_date, period_start, period_end)
    ]
    return sorted(selected, key=lambda e: e.start_date)


def equivalent_hourly_rate(annual_salary: Decimal | None, standard_weekly_hours: Decimal) -> Decimal:
    """Hourly rate implied by an annual salary and a standard week."""
    if not annual_salary or not standard_weekly_hours:
        return ZERO
    return annual_salary / (WEEKS_PER_YEAR * standard_weekly_hours)


def base_hourly_rate(employee: Employee, settings: PayrollSettings) -> Decimal:
    """The employee's default hourly rate for absence and holiday pay."""
    classification = PayClassification(employee.pay_classification)
    if classification == PayClassification.SALARIED:
        return equivalent_hourly_rate(employee.annual_salary, employee.standard_weekly_hours)
    if classification == PayClassification.SHIFT_DIFFERENTIATED:
        return employee.hourly_rate or settings.shift_day_weekday_rate
    return employee.hourly_rate or ZERO


def summarize_vacation(
    entries: Sequence[VacationEntry],
    employee: Employee,
    settings: PayrollSettings,
) -> AbsenceSummary:
    """Vacation hours and pay for already-selected entries.

    Hours are counted in full even when an entry extends past the period.
    Salaried employees get the hours (for proration) but no extra pay since
    vacation is part of salary.
    """
    if not entries:
        return AbsenceSummary()

    salaried = employee.pay_classification == PayClassification.SALARIED
    default_rate = base_hourly_rate(employee, settings)
    hours = ZERO
    amount = ZERO
    for entry in entries:
        hours += entry.hours
        if not salaried:
            amount += entry.hours * (entry.hourly_rate_override or default_rate)

    return AbsenceSummary(hours=hours, amount=amount, entry_count=len(entries))


def summarize_leave(
    entries: Sequence[LeaveEntry],
    employee: Employee,
    settings: PayrollSettings,
) -> AbsenceSummary:
    """Leave hours and pay, scaled by each entry's payment percentage.

    Salaried employees are paid at their equivalent hourly rate on top of
    salary; the leave type reported is that of the earliest entry.
    """
    if not entries:
        return AbsenceSummary()

    salaried = employee.pay_classification == PayClassification.SALARIED
    default_rate = base_hourly_rate(employee, settings)
    hours = ZERO
    amount = ZERO
    for entry in entries:
        rate = default_rate if salaried else (entry.hourly_rate_override or default_rate)
        hours += entry.hours
        amount += entry.hours * rate * entry.payment_percentage / HUNDRED

    return AbsenceSummary(
        hours=hours,
        amount=amount,
        leave_type=entries[0].leave_type,
        entry_count=len(entries),
    )


def summarize_holidays(
    holidays: Iterable[PublicHoliday],
    employee: Employee,
    settings: PayrollSettings,
    period_start: date,
    period_end: date,
) -> HolidaySummary:
    """One standard day of pay per paid holiday inside the period."""
    if not settings.holiday_pay_enabled:
        return HolidaySummary()

    in_period = sorted(
        (
            h
            for h in holidays
            if h.paid and period_start <= h.holiday_date <= period_end
        ),
        key=lambda h: h.holiday_date,
    )
    if not in_period:
        return HolidaySummary()

    if employee.pay_classification == PayClassification.SHIFT_DIFFERENTIATED:
        rate = settings.shift_day_weekday_rate
    else:
        rate = base_hourly_rate(employee, settings)

    day_hours = employee.standard_weekly_hours / Decimal(settings.working_days_per_week)
    hours = day_hours * len(in_period)
    return HolidaySummary(
        hours=hours,
        amount=hours * rate,
        holiday_names=tuple(h.name for h in in_period),
    )
