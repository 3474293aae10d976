"""Employee timesheet endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from hrms.api.dependencies import DbSession, Principal, require
from hrms.api.schemas import ErrorResponse, TimesheetResponse, TimesheetUpdateRequest
from hrms.authorization import Capability
from hrms.services.timesheet_service import EntryInput, TimesheetService

router = APIRouter(prefix="/employee/timesheet", tags=["timesheets"])

SelfService = Annotated[Principal, Depends(require(Capability.TIMESHEET_SELF_SERVICE))]


@router.get("/current", response_model=TimesheetResponse)
async def get_current_timesheet(db: DbSession, principal: SelfService) -> TimesheetResponse:
    """Get this week's timesheet, creating an empty draft if needed."""
    timesheet = await TimesheetService(db).get_current(principal.username)
    await db.commit()
    return TimesheetResponse.from_timesheet(timesheet)


@router.get("/history", response_model=list[TimesheetResponse])
async def get_timesheet_history(
    db: DbSession, principal: SelfService
) -> list[TimesheetResponse]:
    """List the caller's timesheets, newest week first."""
    timesheets = await TimesheetService(db).history(principal.username)
    return [TimesheetResponse.from_timesheet(t) for t in timesheets]


@router.get(
    "/{timesheet_id}",
    response_model=TimesheetResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_timesheet(
    db: DbSession,
    principal: SelfService,
    timesheet_id: Annotated[int, Path()],
) -> TimesheetResponse:
    """Get a timesheet the caller owns, manages, or administers."""
    timesheet = await TimesheetService(db).get_for_viewer(timesheet_id, principal.username)
    return TimesheetResponse.from_timesheet(timesheet)


@router.put(
    "/{timesheet_id}",
    response_model=TimesheetResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def update_timesheet(
    db: DbSession,
    principal: SelfService,
    timesheet_id: Annotated[int, Path()],
    payload: TimesheetUpdateRequest,
) -> TimesheetResponse:
    """Replace all entries of a draft or denied timesheet."""
    entries = [
        EntryInput(
            work_date=e.work_date,
            hours_worked=e.hours_worked,
            description=e.description,
        )
        for e in payload.entries
    ]
    timesheet = await TimesheetService(db).update_entries(
        timesheet_id, entries, requester_username=principal.username
    )
    await db.commit()
    return TimesheetResponse.from_timesheet(timesheet)


@router.post(
    "/{timesheet_id}/submit",
    response_model=TimesheetResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def submit_timesheet(
    db: DbSession,
    principal: SelfService,
    timesheet_id: Annotated[int, Path()],
) -> TimesheetResponse:
    """Submit a timesheet for manager review."""
    timesheet = await TimesheetService(db).submit(timesheet_id, principal.username)
    await db.commit()
    return TimesheetResponse.from_timesheet(timesheet)
