"""ORM models for the payroll batch engine."""

from payroll_batch.models.absence import LeaveEntry, PublicHoliday, VacationEntry
from payroll_batch.models.base import Base, TimestampMixin
from payroll_batch.models.employee import Employee
from payroll_batch.models.loan import Loan, LoanPayment
from payroll_batch.models.payroll import (
    YTD_COMPONENTS,
    AuditEvent,
    EmployeeYtdSummary,
    PayrollLineItem,
    PayrollRun,
)
from payroll_batch.models.settings import PayrollSettingsRecord, SystemSetting
from payroll_batch.models.timesheet import TimeEntry, TimesheetPeriod

__all__ = [
    "YTD_COMPONENTS",
    "AuditEvent",
    "Base",
    "Employee",
    "EmployeeYtdSummary",
    "LeaveEntry",
    "Loan",
    "LoanPayment",
    "PayrollLineItem",
    "PayrollRun",
    "PayrollSettingsRecord",
    "PublicHoliday",
    "SystemSetting",
    "TimeEntry",
    "TimesheetPeriod",
    "TimestampMixin",
    "VacationEntry",
]
