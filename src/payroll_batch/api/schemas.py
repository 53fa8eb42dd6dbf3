"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_batch.calculators.types import PayFrequency


# ============================================================================
# Payroll run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for calculating a new payroll run."""

    period_id: UUID
    pay_date: date
    pay_frequency_default: PayFrequency | None = None
    created_by: str | None = None


class EmployeeErrorResponse(BaseModel):
    """Per-employee problem reported with a run."""

    employee_id: UUID | None = None
    employee_name: str
    error: str


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    run_id: UUID
    period_id: UUID
    pay_date: date
    status: str
    created_by: str | None = None
    total_employees: int
    error_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_loan_deductions: Decimal
    total_employer_contributions: Decimal
    total_net: Decimal
    errors: list[EmployeeErrorResponse] = Field(default_factory=list, validation_alias="errors_json")
    finalized_at: datetime | None = None


class PayrollRunListResponse(BaseModel):
    """Schema for payroll run list."""

    items: list[PayrollRunResponse]
    total: int


# ============================================================================
# Line item schemas
# ============================================================================


class LineItemResponse(BaseModel):
    """Schema for one employee's payroll line item."""

    model_config = ConfigDict(from_attributes=True)

    line_item_id: UUID
    run_id: UUID
    employee_id: UUID
    employee_name: str
    pay_classification: str
    pay_frequency: str

    hours_worked: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    vacation_hours: Decimal
    leave_hours: Decimal
    holiday_hours: Decimal

    base_pay: Decimal
    overtime_amount: Decimal
    vacation_amount: Decimal
    leave_amount: Decimal
    leave_type: str | None = None
    holiday_amount: Decimal
    holiday_names: list[str] = Field(default_factory=list)
    gross_pay: Decimal

    social_contribution_employee: Decimal
    social_contribution_employer: Decimal
    health_benefit_employee: Decimal
    health_benefit_employer: Decimal
    income_levy: Decimal

    loan_deduction: Decimal
    internal_loan_deduction: Decimal
    third_party_loan_deduction: Decimal
    net_pay: Decimal

    ytd_gross_pay: Decimal
    ytd_net_pay: Decimal

    is_override: bool
    override_amount: Decimal | None = None
    override_reason: str | None = None
    override_by: str | None = None
    override_at: datetime | None = None


class LineItemListResponse(BaseModel):
    """Schema for line item list."""

    items: list[LineItemResponse]
    total: int


class CalculationResponse(BaseModel):
    """Outcome of a payroll calculation."""

    run_id: UUID
    status: str
    total_employees: int
    line_items: list[LineItemResponse]
    errors: list[EmployeeErrorResponse]


class OverrideRequest(BaseModel):
    """Schema for overriding a line item's gross pay."""

    new_gross_amount: Decimal = Field(ge=0)
    reason: str = Field(min_length=1)
    actor: str | None = None


# ============================================================================
# YTD schemas
# ============================================================================


class YtdSummaryResponse(BaseModel):
    """Year-to-date totals for one employee and year."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    year: int
    last_run_id: UUID | None = None
    ytd_gross_pay: Decimal
    ytd_social_contribution_employee: Decimal
    ytd_social_contribution_employer: Decimal
    ytd_health_benefit_employee: Decimal
    ytd_health_benefit_employer: Decimal
    ytd_income_levy: Decimal
    ytd_loan_deduction: Decimal
    ytd_net_pay: Decimal
    ytd_hours_worked: Decimal
    ytd_vacation_hours: Decimal
    ytd_vacation_amount: Decimal
    ytd_leave_hours: Decimal
    ytd_leave_amount: Decimal
    ytd_holiday_hours: Decimal
    ytd_holiday_amount: Decimal


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
