"""Pure payroll calculators."""

from payroll_batch.calculators.absence import (
    summarize_holidays,
    summarize_leave,
    summarize_vacation,
)
from payroll_batch.calculators.deductions import calculate_age, calculate_deductions
from payroll_batch.calculators.loans import compute_installment, loan_total_amount
from payroll_batch.calculators.pay_models import calculate_gross_pay
from payroll_batch.calculators.time_aggregator import (
    EmployeeNotMatchedError,
    InvalidTimeValueError,
    aggregate_time_entries,
    parse_duration,
)

__all__ = [
    "EmployeeNotMatchedError",
    "InvalidTimeValueError",
    "aggregate_time_entries",
    "calculate_age",
    "calculate_deductions",
    "calculate_gross_pay",
    "compute_installment",
    "loan_total_amount",
    "parse_duration",
    "summarize_holidays",
    "summarize_leave",
    "summarize_vacation",
]
