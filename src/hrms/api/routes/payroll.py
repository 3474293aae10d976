"""Payroll endpoints for employees and administrators."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Response, status

from hrms.api.dependencies import DbSession, Principal, require
from hrms.api.schemas import (
    CurrentWeekPayrollResponse,
    ErrorResponse,
    PayrollPreviewResponse,
    PayrollResponse,
    PayrollRunRequest,
    PayrollRunResponse,
)
from hrms.authorization import Capability
from hrms.exceptions import ForbiddenError
from hrms.services.payroll_service import PayrollService

employee_router = APIRouter(prefix="/employee/payroll", tags=["payroll"])
admin_router = APIRouter(prefix="/admin/payroll", tags=["payroll-admin"])

SelfService = Annotated[Principal, Depends(require(Capability.PAYROLL_SELF_SERVICE))]
PayrollAdmin = Annotated[Principal, Depends(require(Capability.PAYROLL_ADMIN))]


# ============================================================================
# Employee self-service
# ============================================================================


@employee_router.get("/history", response_model=list[PayrollResponse])
async def get_my_payroll_history(
    db: DbSession, principal: SelfService
) -> list[PayrollResponse]:
    """List the caller's payroll records."""
    payrolls = await PayrollService(db).history(principal.username)
    return [PayrollResponse.from_payroll(p) for p in payrolls]


@employee_router.get(
    "/{payroll_id}",
    response_model=PayrollResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_my_payroll(
    db: DbSession,
    principal: SelfService,
    payroll_id: Annotated[int, Path()],
) -> PayrollResponse:
    """Get one of the caller's payroll records."""
    payroll = await PayrollService(db).get_by_id(payroll_id)
    if payroll.employee.username != principal.username:
        raise ForbiddenError("You can only view your own payroll records")
    return PayrollResponse.from_payroll(payroll)


# ============================================================================
# Administration
# ============================================================================


@admin_router.get(
    "/preview",
    response_model=PayrollPreviewResponse,
    responses={400: {"model": ErrorResponse}},
)
async def preview_payroll(
    db: DbSession,
    principal: PayrollAdmin,
    week_start_date: Annotated[date, Query(alias="weekStartDate")],
) -> PayrollPreviewResponse:
    """Calculate a week's payroll without saving it."""
    summary = await PayrollService(db).preview(week_start_date)
    return PayrollPreviewResponse.from_summary(summary)


@admin_router.post(
    "/run",
    response_model=PayrollRunResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def run_payroll(
    db: DbSession,
    principal: PayrollAdmin,
    payload: PayrollRunRequest,
) -> PayrollRunResponse:
    """Process payroll for every approved timesheet of the week."""
    result = await PayrollService(db).run(
        payload.week_start_date, payload.payment_date, principal.username
    )
    await db.commit()
    return PayrollRunResponse(
        message=result.message,
        processed_count=result.processed_count,
        total_amount=result.total_amount,
        processed_at=result.processed_at,
    )


@admin_router.get(
    "/history",
    response_model=list[PayrollResponse],
    responses={400: {"model": ErrorResponse}},
)
async def payroll_history(
    db: DbSession,
    principal: PayrollAdmin,
    start_date: Annotated[date, Query(alias="startDate")],
    end_date: Annotated[date, Query(alias="endDate")],
) -> list[PayrollResponse]:
    """List processed and paid records within a date range."""
    payrolls = await PayrollService(db).history_by_date_range(start_date, end_date)
    return [PayrollResponse.from_payroll(p) for p in payrolls]


@admin_router.get("/current-week", response_model=CurrentWeekPayrollResponse)
async def current_week_payroll(
    db: DbSession, principal: PayrollAdmin
) -> CurrentWeekPayrollResponse:
    """Payroll state for the current week."""
    week = await PayrollService(db).current_week_status()
    return CurrentWeekPayrollResponse.model_validate(week)


@admin_router.get(
    "/{payroll_id}",
    response_model=PayrollResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll(
    db: DbSession,
    principal: PayrollAdmin,
    payroll_id: Annotated[int, Path()],
) -> PayrollResponse:
    payroll = await PayrollService(db).get_by_id(payroll_id)
    return PayrollResponse.from_payroll(payroll)


@admin_router.patch(
    "/{payroll_id}/mark-paid",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_payroll_paid(
    db: DbSession,
    principal: PayrollAdmin,
    payroll_id: Annotated[int, Path()],
) -> Response:
    """Record that a processed payroll has been paid out."""
    await PayrollService(db).mark_paid(payroll_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
