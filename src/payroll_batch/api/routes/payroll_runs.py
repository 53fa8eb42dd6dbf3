"""Payroll run, line item and YTD API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from payroll_batch.api.dependencies import Overrides, RunService
from payroll_batch.api.schemas import (
    CalculationResponse,
    EmployeeErrorResponse,
    ErrorResponse,
    LineItemListResponse,
    LineItemResponse,
    OverrideRequest,
    PayrollRunCreate,
    PayrollRunListResponse,
    PayrollRunResponse,
    YtdSummaryResponse,
)
from payroll_batch.services import (
    InvalidTransitionError,
    LineItemNotFoundError,
    PeriodNotFoundError,
    RunFinalizedError,
    RunNotFoundError,
)

runs_router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])
line_items_router = APIRouter(prefix="/line-items", tags=["line-items"])
ytd_router = APIRouter(prefix="/employees", tags=["ytd"])


# ============================================================================
# Payroll runs
# ============================================================================


@runs_router.post(
    "",
    response_model=CalculationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def calculate_payroll(
    service: RunService,
    payload: PayrollRunCreate,
) -> CalculationResponse:
    """Calculate payroll for a timesheet period."""
    try:
        result = await service.calculate_payroll(
            payload.period_id,
            payload.pay_date,
            payload.pay_frequency_default,
            created_by=payload.created_by,
        )
    except PeriodNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return CalculationResponse(
        run_id=result.run_id,
        status=result.status.value,
        total_employees=result.total_employees,
        line_items=[LineItemResponse.model_validate(i) for i in result.line_items],
        errors=[EmployeeErrorResponse(**e.to_dict()) for e in result.errors],
    )


@runs_router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    service: RunService,
    period_id: Annotated[UUID | None, Query()] = None,
) -> PayrollRunListResponse:
    """List payroll runs, newest pay date first."""
    runs = await service.list_runs(period_id=period_id)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(r) for r in runs],
        total=len(runs),
    )


@runs_router.get(
    "/{run_id}",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    service: RunService,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Get a payroll run by ID."""
    try:
        run = await service.get_run(run_id)
    except RunNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    return PayrollRunResponse.model_validate(run)


@runs_router.post(
    "/{run_id}/finalize",
    response_model=PayrollRunResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def finalize_payroll_run(
    service: RunService,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunResponse:
    """Finalize a completed payroll run."""
    try:
        run = await service.finalize_run(run_id)
    except RunNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    return PayrollRunResponse.model_validate(run)


# ============================================================================
# Line items
# ============================================================================


@line_items_router.get("", response_model=LineItemListResponse)
async def list_line_items(
    service: RunService,
    run_id: Annotated[UUID | None, Query()] = None,
    employee_id: Annotated[UUID | None, Query()] = None,
) -> LineItemListResponse:
    """List line items, optionally for one run or one employee."""
    items = await service.list_line_items(run_id=run_id, employee_id=employee_id)
    return LineItemListResponse(
        items=[LineItemResponse.model_validate(i) for i in items],
        total=len(items),
    )


@line_items_router.post(
    "/{line_item_id}/override",
    response_model=LineItemResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def override_line_item(
    overrides: Overrides,
    line_item_id: Annotated[UUID, Path()],
    payload: OverrideRequest,
) -> LineItemResponse:
    """Override a line item's gross pay and recompute its deductions."""
    try:
        item = await overrides.apply_override(
            line_item_id,
            payload.new_gross_amount,
            payload.reason,
            actor=payload.actor,
        )
    except LineItemNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except RunFinalizedError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    return LineItemResponse.model_validate(item)


# ============================================================================
# Year to date
# ============================================================================


@ytd_router.get(
    "/{employee_id}/ytd/{year}",
    response_model=YtdSummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_ytd_summary(
    service: RunService,
    employee_id: Annotated[UUID, Path()],
    year: Annotated[int, Path(ge=1900, le=9999)],
) -> YtdSummaryResponse:
    """Get an employee's year-to-date totals."""
    summary = await service.get_ytd_summary(employee_id, year)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No YTD summary for employee {employee_id} in {year}",
        )
    return YtdSummaryResponse.model_validate(summary)
