"""Statutory deductions: social contribution, health benefit, income levy.

All functions here are pure. Rates in PayrollSettings are percentages.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from payroll_batch.calculators.types import (
    ZERO,
    DeductionSet,
    ExemptionFlags,
    PayFrequency,
    PayrollSettings,
    round_to_cents,
)

HUNDRED = Decimal(100)

# Share of the monthly insurable cap that applies to one period
SOCIAL_CAP_FACTORS: dict[PayFrequency, Decimal] = {
    PayFrequency.WEEKLY: Decimal(7) / Decimal(30),
    PayFrequency.BIWEEKLY: Decimal(14) / Decimal(30),
    PayFrequency.SEMIMONTHLY: Decimal("0.5"),
    PayFrequency.MONTHLY: Decimal(1),
}

LEVY_FREQUENCIES = frozenset({PayFrequency.MONTHLY, PayFrequency.SEMIMONTHLY})


def calculate_age(birth_date: date | None, as_of: date) -> int | None:
    """Age in whole years on as_of, or None when the birth date is unknown."""
    if birth_date is None:
        return None
    age = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def social_cap(settings: PayrollSettings, frequency: PayFrequency) -> Decimal:
    """Insurable earnings cap for one pay period.

    Periods measured in days are prorated on a 30-day month: weekly pay gets
    7/30 of the monthly cap and biweekly pay 14/30. Weekly pay never gets the
    full monthly cap.
    """
    return settings.social_monthly_cap * SOCIAL_CAP_FACTORS[frequency]


def social_contribution(
    gross_pay: Decimal,
    age: int | None,
    settings: PayrollSettings,
    frequency: PayFrequency,
    exempt: bool = False,
) -> tuple[Decimal, Decimal]:
    """(employee, employer) social contribution on the capped gross."""
    if exempt or (age is not None and age >= settings.retirement_age):
        return ZERO, ZERO

    insurable = max(ZERO, min(gross_pay, social_cap(settings, frequency)))
    return (
        insurable * settings.social_employee_rate / HUNDRED,
        insurable * settings.social_employer_rate / HUNDRED,
    )


def health_benefit(
    gross_pay: Decimal,
    age: int | None,
    settings: PayrollSettings,
    exempt: bool = False,
) -> tuple[Decimal, Decimal]:
    """(employee, employer) health benefit by age band.

    Below the senior age both standard rates apply. From the senior age up to
    the maximum age only the reduced employee rate applies. At or above the
    maximum age nothing is due.
    """
    if exempt or (age is not None and age >= settings.health_max_age):
        return ZERO, ZERO

    base = max(ZERO, gross_pay)
    if age is not None and age >= settings.health_senior_age:
        return base * settings.health_senior_employee_rate / HUNDRED, ZERO
    return (
        base * settings.health_employee_rate / HUNDRED,
        base * settings.health_employer_rate / HUNDRED,
    )


def income_levy(
    gross_pay: Decimal,
    settings: PayrollSettings,
    frequency: PayFrequency,
) -> Decimal:
    """Two-tier levy, charged for monthly and semimonthly pay only.

    Semimonthly pay uses half the monthly threshold and exemption.
    """
    if frequency not in LEVY_FREQUENCIES:
        return ZERO

    threshold = settings.levy_threshold
    exemption = settings.levy_exemption
    if frequency == PayFrequency.SEMIMONTHLY:
        threshold = threshold / 2
        exemption = exemption / 2

    if gross_pay <= threshold:
        levy = max(ZERO, gross_pay - exemption) * settings.levy_rate / HUNDRED
    else:
        lower = (threshold - exemption) * settings.levy_rate / HUNDRED
        upper = (gross_pay - threshold) * settings.levy_high_rate / HUNDRED
        levy = lower + upper
    return max(ZERO, levy)


def calculate_deductions(
    gross_pay: Decimal,
    age: int | None,
    settings: PayrollSettings,
    exemptions: ExemptionFlags | None = None,
    pay_frequency: PayFrequency = PayFrequency.MONTHLY,
) -> DeductionSet:
    """Compute every statutory deduction for one gross amount.

    Args:
        gross_pay: Gross pay for the period
        age: Employee age at the pay date (None when unknown)
        settings: Rates, caps and age thresholds for this run
        exemptions: Per-employee social/health exemptions
        pay_frequency: Employee's pay frequency

    Returns:
        DeductionSet with every component clamped at zero and rounded to cents
    """
    exemptions = exemptions or ExemptionFlags()
    frequency = PayFrequency(pay_frequency)

    social_ee, social_er = social_contribution(
        gross_pay, age, settings, frequency, exempt=exemptions.social_exempt
    )
    health_ee, health_er = health_benefit(
        gross_pay, age, settings, exempt=exemptions.health_exempt
    )
    levy = income_levy(gross_pay, settings, frequency)

    return DeductionSet(
        gross_pay=round_to_cents(gross_pay),
        social_contribution_employee=round_to_cents(max(ZERO, social_ee)),
        social_contribution_employer=round_to_cents(max(ZERO, social_er)),
        health_benefit_employee=round_to_cents(max(ZERO, health_ee)),
        health_benefit_employer=round_to_cents(max(ZERO, health_er)),
        income_levy=round_to_cents(levy),
    )
