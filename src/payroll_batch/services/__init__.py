"""Payroll batch services."""

from payroll_batch.services.state_machine import RunStateMachine, RunStatus, InvalidTransitionError
from payroll_batch.services.override_service import (
    LineItemNotFoundError,
    OverrideService,
    RunFinalizedError,
)
from payroll_batch.services.payroll_run_service import (
    PayrollCalculationResult,
    PayrollRunService,
    PeriodNotFoundError,
    RunAccumulator,
    RunNotFoundError,
)
from payroll_batch.services.loan_service import LoanService
from payroll_batch.services.settings_service import SettingsService
from payroll_batch.services.ytd_service import YtdService

__all__ = [
    "RunStateMachine",
    "RunStatus",
    "InvalidTransitionError",
    "LineItemNotFoundError",
    "OverrideService",
    "RunFinalizedError",
    "PayrollCalculationResult",
    "PayrollRunService",
    "PeriodNotFoundError",
    "RunAccumulator",
    "RunNotFoundError",
    "LoanService",
    "SettingsService",
    "YtdService",
]
