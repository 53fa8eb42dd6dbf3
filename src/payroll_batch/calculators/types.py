"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class PayClassification(str, Enum):
    """Employee compensation models."""

    SALARIED = "salaried"
    HOURLY = "hourly"
    SHIFT_DIFFERENTIATED = "shift_differentiated"


class PayFrequency(str, Enum):
    """How often an employee is paid."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @property
    def weeks_in_period(self) -> Decimal:
        """Weeks covered by one pay period (52 weeks spread over the year's periods)."""
        return Decimal(52) / Decimal(self.periods_per_year)


_PERIODS_PER_YEAR = {
    PayFrequency.WEEKLY: 52,
    PayFrequency.BIWEEKLY: 26,
    PayFrequency.SEMIMONTHLY: 24,
    PayFrequency.MONTHLY: 12,
}


class LoanStatus(str, Enum):
    """Loan lifecycle values."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class LoanClass(str, Enum):
    """Who the loan is owed to."""

    INTERNAL = "internal"
    THIRD_PARTY = "third_party"


@dataclass(frozen=True)
class PayrollSettings:
    """Statutory and pay-model configuration, loaded once per run.

    Rates are percentages (7.00 means 7%).
    """

    social_employee_rate: Decimal = Decimal("7.00")
    social_employer_rate: Decimal = Decimal("9.00")
    social_monthly_cap: Decimal = Decimal("6500.00")

    health_employee_rate: Decimal = Decimal("3.50")
    health_employer_rate: Decimal = Decimal("3.50")
    health_senior_employee_rate: Decimal = Decimal("2.50")

    levy_rate: Decimal = Decimal("2.50")
    levy_high_rate: Decimal = Decimal("5.00")
    levy_threshold: Decimal = Decimal("5000.00")
    levy_exemption: Decimal = Decimal("541.67")

    retirement_age: int = 65
    health_senior_age: int = 60
    health_max_age: int = 70

    shift_day_weekday_rate: Decimal = Decimal("35.00")
    shift_day_weekend_rate: Decimal = Decimal("40.00")
    shift_night_rate: Decimal = Decimal("40.00")
    shift_day_start: time = time(7, 0)
    shift_day_end: time = time(19, 0)

    holiday_pay_enabled: bool = True

    overtime_multiplier: Decimal = Decimal("1.5")
    working_days_per_week: int = 5


@dataclass(frozen=True)
class DailyHours:
    """Hours recorded by one employee on one calendar day."""

    work_date: date
    hours: Decimal
    first_time_in: time | None = None

    @property
    def is_weekend(self) -> bool:
        return self.work_date.weekday() >= 5


@dataclass
class EmployeeHours:
    """Aggregated time for one resolved employee within a period."""

    employee_id: UUID
    employee_name: str
    total_hours: Decimal = ZERO
    days: dict[date, DailyHours] = field(default_factory=dict)

    @property
    def daily_hours(self) -> list[DailyHours]:
        return [self.days[d] for d in sorted(self.days)]


@dataclass(frozen=True)
class EmployeeError:
    """A recoverable, per-employee failure reported with the run."""

    employee_name: str
    error: str
    employee_id: UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": str(self.employee_id) if self.employee_id else None,
            "employee_name": self.employee_name,
            "error": self.error,
        }


@dataclass(frozen=True)
class AbsenceSummary:
    """Vacation or leave consumed by one employee in a period."""

    hours: Decimal = ZERO
    amount: Decimal = ZERO
    leave_type: str | None = None
    entry_count: int = 0


@dataclass(frozen=True)
class HolidaySummary:
    """Paid public holidays falling inside a period."""

    hours: Decimal = ZERO
    amount: Decimal = ZERO
    holiday_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class PayInputs:
    """Everything the pay model calculators need for one employee."""

    classification: PayClassification
    frequency: PayFrequency
    worked_hours: Decimal
    standard_weekly_hours: Decimal
    hourly_rate: Decimal | None = None
    annual_salary: Decimal | None = None
    daily_hours: tuple[DailyHours, ...] = ()
    vacation: AbsenceSummary = AbsenceSummary()
    leave: AbsenceSummary = AbsenceSummary()
    holidays: HolidaySummary = HolidaySummary()

    @property
    def standard_period_hours(self) -> Decimal:
        return self.standard_weekly_hours * self.frequency.weeks_in_period


@dataclass(frozen=True)
class GrossPay:
    """Output of a pay model calculation, rounded to cents."""

    classification: PayClassification
    hours_worked: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    base_pay: Decimal
    overtime_amount: Decimal
    vacation_hours: Decimal
    vacation_amount: Decimal
    leave_hours: Decimal
    leave_amount: Decimal
    holiday_hours: Decimal
    holiday_amount: Decimal
    gross_pay: Decimal
    leave_type: str | None = None


@dataclass(frozen=True)
class ExemptionFlags:
    """Per-employee statutory exemptions."""

    social_exempt: bool = False
    health_exempt: bool = False


@dataclass(frozen=True)
class DeductionSet:
    """Statutory deductions for one gross amount, rounded to cents."""

    gross_pay: Decimal
    social_contribution_employee: Decimal = ZERO
    social_contribution_employer: Decimal = ZERO
    health_benefit_employee: Decimal = ZERO
    health_benefit_employer: Decimal = ZERO
    income_levy: Decimal = ZERO

    @property
    def total_employee(self) -> Decimal:
        return (
            self.social_contribution_employee
            + self.health_benefit_employee
            + self.income_levy
        )

    @property
    def total_employer(self) -> Decimal:
        return self.social_contribution_employer + self.health_benefit_employer

    @property
    def net_pay_pre_loan(self) -> Decimal:
        return self.gross_pay - self.total_employee


@dataclass(frozen=True)
class LoanInstallment:
    """One computed loan payment before it is written."""

    amount: Decimal
    principal_portion: Decimal
    interest_portion: Decimal
    resulting_balance: Decimal

    @property
    def completes_loan(self) -> bool:
        return self.resulting_balance <= 0


@dataclass
class LoanDeductionSummary:
    """Loan deductions taken from one line item."""

    total: Decimal = ZERO
    internal: Decimal = ZERO
    third_party: Decimal = ZERO
    payments_written: int = 0
    payments_skipped: int = 0

    def add(self, loan_class: str, amount: Decimal) -> None:
        self.total += amount
        if loan_class == LoanClass.THIRD_PARTY:
            self.third_party += amount
        else:
            self.internal += amount
        self.payments_written += 1
