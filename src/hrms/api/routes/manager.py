"""Manager review endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query

from hrms.api.dependencies import DbSession, Principal, require
from hrms.api.schemas import (
    CountResponse,
    DenyRequest,
    DirectReportResponse,
    ErrorResponse,
    ManagerStatisticsResponse,
    TimesheetResponse,
)
from hrms.authorization import Capability
from hrms.services.state_machine import TimesheetStatus
from hrms.services.timesheet_service import TimesheetService

router = APIRouter(prefix="/manager", tags=["manager"])

Reviewer = Annotated[Principal, Depends(require(Capability.TIMESHEET_REVIEW))]

REVIEW_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get("/timesheets", response_model=list[TimesheetResponse])
async def list_team_timesheets(
    db: DbSession,
    principal: Reviewer,
    status: Annotated[TimesheetStatus, Query()] = TimesheetStatus.SUBMITTED,
) -> list[TimesheetResponse]:
    """List direct reports' timesheets in a status."""
    timesheets = await TimesheetService(db).team_timesheets(principal.username, status)
    return [TimesheetResponse.from_timesheet(t) for t in timesheets]


@router.get("/timesheets/pending/count", response_model=CountResponse)
async def pending_timesheet_count(db: DbSession, principal: Reviewer) -> CountResponse:
    """Count direct reports' timesheets awaiting review."""
    count = await TimesheetService(db).pending_count(principal.username)
    return CountResponse(count=count)


@router.get("/timesheets/{timesheet_id}", response_model=TimesheetResponse, responses=REVIEW_ERRORS)
async def get_team_timesheet(
    db: DbSession,
    principal: Reviewer,
    timesheet_id: Annotated[int, Path()],
) -> TimesheetResponse:
    timesheet = await TimesheetService(db).get_for_viewer(timesheet_id, principal.username)
    return TimesheetResponse.from_timesheet(timesheet)


@router.post(
    "/timesheets/{timesheet_id}/approve",
    response_model=TimesheetResponse,
    responses=REVIEW_ERRORS,
)
async def approve_timesheet(
    db: DbSession,
    principal: Reviewer,
    timesheet_id: Annotated[int, Path()],
) -> TimesheetResponse:
    """Approve a submitted timesheet of a direct report."""
    timesheet = await TimesheetService(db).approve(timesheet_id, principal.username)
    await db.commit()
    return TimesheetResponse.from_timesheet(timesheet)


@router.post(
    "/timesheets/{timesheet_id}/deny",
    response_model=TimesheetResponse,
    responses={400: {"model": ErrorResponse}, **REVIEW_ERRORS},
)
async def deny_timesheet(
    db: DbSession,
    principal: Reviewer,
    timesheet_id: Annotated[int, Path()],
    payload: DenyRequest,
) -> TimesheetResponse:
    """Deny a submitted timesheet of a direct report."""
    timesheet = await TimesheetService(db).deny(
        timesheet_id, principal.username, payload.reason
    )
    await db.commit()
    return TimesheetResponse.from_timesheet(timesheet)


@router.get("/statistics", response_model=ManagerStatisticsResponse)
async def manager_statistics(db: DbSession, principal: Reviewer) -> ManagerStatisticsResponse:
    """Dashboard counts for the caller's team."""
    service = TimesheetService(db)
    return ManagerStatisticsResponse(
        pending_timesheets=await service.pending_count(principal.username),
        direct_reports=await service.direct_report_count(principal.username),
    )


@router.get("/employees", response_model=list[DirectReportResponse])
async def list_direct_reports(db: DbSession, principal: Reviewer) -> list[DirectReportResponse]:
    """List the caller's active direct reports."""
    reports = await TimesheetService(db).direct_reports(principal.username)
    return [DirectReportResponse.model_validate(e) for e in reports]
