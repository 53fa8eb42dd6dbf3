"""Gross pay calculation per pay classification.

Each classification has one calculator taking the same PayInputs. The
registry maps a classification to its calculator; calculate_gross_pay is the
single entry point used by the payroll run.
"""

from __future__ import annotations

import logging
from datetime import time
from decimal import Decimal
from typing import Callable

from payroll_batch.calculators.types import (
    ZERO,
    DailyHours,
    GrossPay,
    PayClassification,
    PayInputs,
    PayrollSettings,
    round_to_cents,
)

logger = logging.getLogger(__name__)

PayCalculator = Callable[[PayInputs, PayrollSettings], GrossPay]


def _assemble(
    inputs: PayInputs,
    *,
    regular_hours: Decimal,
    overtime_hours: Decimal,
    base_pay: Decimal,
    overtime_amount: Decimal,
) -> GrossPay:
    """Add absence and holiday pay to base pay and round every amount."""
    gross = (
        base_pay
        + overtime_amount
        + inputs.vacation.amount
        + inputs.leave.amount
        + inputs.holidays.amount
    )
    return GrossPay(
        classification=inputs.classification,
        hours_worked=round_to_cents(inputs.worked_hours),
        regular_hours=round_to_cents(regular_hours),
        overtime_hours=round_to_cents(overtime_hours),
        base_pay=round_to_cents(base_pay),
        overtime_amount=round_to_cents(overtime_amount),
        vacation_hours=round_to_cents(inputs.vacation.hours),
        vacation_amount=round_to_cents(inputs.vacation.amount),
        leave_hours=round_to_cents(inputs.leave.hours),
        leave_amount=round_to_cents(inputs.leave.amount),
        holiday_hours=round_to_cents(inputs.holidays.hours),
        holiday_amount=round_to_cents(inputs.holidays.amount),
        gross_pay=round_to_cents(gross),
        leave_type=inputs.leave.leave_type,
    )


def calculate_salaried(inputs: PayInputs, settings: PayrollSettings) -> GrossPay:
    """Periodic salary, prorated when the period is not fully covered.

    Worked, vacation and leave hours all count toward covering the standard
    period hours. Salaried employees never earn overtime.
    """
    annual_salary = inputs.annual_salary or ZERO
    full_period_pay = annual_salary / Decimal(inputs.frequency.periods_per_year)
    standard_hours = inputs.standard_period_hours

    covered_hours = inputs.worked_hours + inputs.vacation.hours + inputs.leave.hours
    if standard_hours > 0 and covered_hours < standard_hours:
        base_pay = full_period_pay * covered_hours / standard_hours
        logger.debug(
            "Prorating salary: %s of %s standard hours covered",
            covered_hours,
            standard_hours,
        )
    else:
        base_pay = full_period_pay

    return _assemble(
        inputs,
        regular_hours=inputs.worked_hours,
        overtime_hours=ZERO,
        base_pay=base_pay,
        overtime_amount=ZERO,
    )


def calculate_hourly(inputs: PayInputs, settings: PayrollSettings) -> GrossPay:
    """Hourly pay with overtime beyond the standard period hours.

    Only worked hours count toward the overtime threshold.
    """
    rate = inputs.hourly_rate or ZERO
    standard_hours = inputs.standard_period_hours

    regular_hours = min(inputs.worked_hours, standard_hours)
    overtime_hours = max(ZERO, inputs.worked_hours - standard_hours)

    return _assemble(
        inputs,
        regular_hours=regular_hours,
        overtime_hours=overtime_hours,
        base_pay=regular_hours * rate,
        overtime_amount=overtime_hours * rate * settings.overtime_multiplier,
    )


def is_day_shift(first_time_in: time | None, settings: PayrollSettings) -> bool:
    """True when the first punch-in falls inside the day-shift window."""
    if first_time_in is None:
        return True
    return settings.shift_day_start <= first_time_in < settings.shift_day_end


def shift_rate_for_day(day: DailyHours, settings: PayrollSettings) -> Decimal:
    if not is_day_shift(day.first_time_in, settings):
        return settings.shift_night_rate
    if day.is_weekend:
        return settings.shift_day_weekend_rate
    return settings.shift_day_weekday_rate


def calculate_shift_differentiated(
    inputs: PayInputs, settings: PayrollSettings
) -> GrossPay:
    """Pay each worked day at the rate for its shift.

    The rate for a whole day is chosen from the day's first punch-in and
    whether it is a weekend. There is no overtime for this classification.
    """
    base_pay = ZERO
    for day in inputs.daily_hours:
        base_pay += day.hours * shift_rate_for_day(day, settings)

    return _assemble(
        inputs,
        regular_hours=inputs.worked_hours,
        overtime_hours=ZERO,
        base_pay=base_pay,
        overtime_amount=ZERO,
    )


PAY_CALCULATORS: dict[PayClassification, PayCalculator] = {
    PayClassification.SALARIED: calculate_salaried,
    PayClassification.HOURLY: calculate_hourly,
    PayClassification.SHIFT_DIFFERENTIATED: calculate_shift_differentiated,
}


def calculate_gross_pay(inputs: PayInputs, settings: PayrollSettings) -> GrossPay:
    """Dispatch to the calculator for the inputs' pay classification."""
    calculator = PAY_CALCULATORS[PayClassification(inputs.classification)]
    return calculator(inputs, settings)
