"""Timesheet lifecycle service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.authorization import Role
from hrms.exceptions import ForbiddenError, NotFoundError, StateConflictError, ValidationError
from hrms.models import Employee, Timesheet, TimesheetEntry, utcnow
from hrms.services.state_machine import TimesheetStateMachine, TimesheetStatus

logger = logging.getLogger(__name__)


# ============================================================================
# Errors
# ============================================================================


class TimesheetNotFoundError(NotFoundError):
    code = "TIMESHEET_NOT_FOUND"

    def __init__(self, timesheet_id: int):
        self.timesheet_id = timesheet_id
        super().__init__(f"Timesheet not found with id: {timesheet_id}")


class EmployeeNotFoundError(NotFoundError):
    code = "EMPLOYEE_NOT_FOUND"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Employee not found: {username}")


class DuplicateTimesheetError(StateConflictError):
    """Raised when the employee already has a timesheet for the week."""

    code = "DUPLICATE_TIMESHEET"


class NotEditableError(StateConflictError):
    code = "TIMESHEET_NOT_EDITABLE"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Timesheet cannot be edited. Status: {status}")


class NotSubmittableError(StateConflictError):
    code = "TIMESHEET_NOT_SUBMITTABLE"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Timesheet cannot be submitted. Status: {status}")


class NotReviewableError(StateConflictError):
    code = "TIMESHEET_NOT_REVIEWABLE"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Timesheet cannot be reviewed. Status: {status}")


class EmptyTimesheetError(ValidationError):
    code = "EMPTY_TIMESHEET"

    def __init__(self):
        super().__init__("Cannot submit empty timesheet")


class InvalidEntryDateError(ValidationError):
    code = "INVALID_ENTRY_DATE"

    def __init__(self, work_date: date, week_start: date, week_end: date):
        self.work_date = work_date
        super().__init__(
            f"Work date {work_date} must be within timesheet week "
            f"({week_start} to {week_end})"
        )


class DuplicateEntryDateError(ValidationError):
    code = "DUPLICATE_ENTRY_DATE"

    def __init__(self, work_date: date):
        self.work_date = work_date
        super().__init__(f"More than one entry for {work_date}")


class NotOwnerError(ForbiddenError):
    code = "NOT_TIMESHEET_OWNER"

    def __init__(self):
        super().__init__("You can only modify your own timesheets")


class NotManagerOfRecordError(ForbiddenError):
    code = "NOT_MANAGER_OF_RECORD"

    def __init__(self, action: str = "approve"):
        super().__init__(f"You can only {action} timesheets of your direct reports")


# ============================================================================
# Service
# ============================================================================


@dataclass(frozen=True)
class EntryInput:
    """One day's hours supplied by the employee."""

    work_date: date
    hours_worked: Decimal
    description: str | None = None


def week_start_for(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


class TimesheetService:
    """Service for timesheet editing, submission and review.

    Key invariants:
    1. One timesheet per (employee, week), enforced by a unique constraint
    2. total_hours always equals the sum of the entries' hours
    3. Status changes are conditional updates on the current status, so two
       concurrent reviews cannot both succeed
    4. Only the manager of record reviews a timesheet
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ========================================================================
    # Lookups
    # ========================================================================

    async def get_employee(self, username: str) -> Employee:
        result = await self.session.execute(
            select(Employee).where(Employee.username == username)
        )
        employee = result.scalar_one_or_none()
        if employee is None:
            raise EmployeeNotFoundError(username)
        return employee

    async def get_by_id(self, timesheet_id: int) -> Timesheet:
        timesheet = await self.session.get(Timesheet, timesheet_id)
        if timesheet is None:
            raise TimesheetNotFoundError(timesheet_id)
        return timesheet

    async def get_for_viewer(self, timesheet_id: int, viewer_username: str) -> Timesheet:
        """Load a timesheet if the viewer owns it, manages its owner, or is an admin."""
        timesheet = await self.get_by_id(timesheet_id)
        viewer = await self.get_employee(viewer_username)
        allowed = (
            timesheet.employee_id == viewer.id
            or timesheet.employee.manager_id == viewer.id
            or viewer.role_enum == Role.ADMIN
        )
        if not allowed:
            raise ForbiddenError("You do not have access to this timesheet")
        return timesheet

    async def get_current(self, username: str, today: date | None = None) -> Timesheet:
        """Return this week's timesheet, creating an empty DRAFT if none exists."""
        employee = await self.get_employee(username)
        week_start = week_start_for(today or date.today())

        result = await self.session.execute(
            select(Timesheet).where(
                Timesheet.employee_id == employee.id,
                Timesheet.week_start_date == week_start,
            )
        )
        timesheet = result.scalar_one_or_none()
        if timesheet is not None:
            return timesheet
        return await self.create_timesheet(employee, week_start)

    async def create_timesheet(self, employee: Employee, week_start: date) -> Timesheet:
        """Create an empty DRAFT timesheet for the week.

        Raises:
            DuplicateTimesheetError: If one already exists for the week
        """
        timesheet = Timesheet(
            employee_id=employee.id,
            week_start_date=week_start,
            week_end_date=week_start + timedelta(days=6),
            total_hours=Decimal("0.00"),
            status=TimesheetStatus.DRAFT.value,
        )
        self.session.add(timesheet)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateTimesheetError(
                f"Timesheet already exists for {employee.username} week of {week_start}"
            ) from e

        await self.session.refresh(timesheet)
        logger.info(
            "Created timesheet %d for %s week of %s", timesheet.id, employee.username, week_start
        )
        return timesheet

    async def history(self, username: str) -> Sequence[Timesheet]:
        """All of an employee's timesheets, newest week first."""
        employee = await self.get_employee(username)
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.employee_id == employee.id)
            .order_by(Timesheet.week_start_date.desc())
        )
        return result.scalars().all()

    async def team_timesheets(
        self,
        manager_username: str,
        status: TimesheetStatus = TimesheetStatus.SUBMITTED,
    ) -> Sequence[Timesheet]:
        """Direct reports' timesheets in a status, oldest submission first."""
        manager = await self.get_employee(manager_username)
        result = await self.session.execute(
            select(Timesheet)
            .join(Employee, Timesheet.employee_id == Employee.id)
            .where(Employee.manager_id == manager.id, Timesheet.status == status.value)
            .order_by(Timesheet.submitted_at.asc(), Timesheet.id.asc())
        )
        return result.scalars().all()

    async def pending_count(self, manager_username: str) -> int:
        manager = await self.get_employee(manager_username)
        result = await self.session.execute(
            select(func.count())
            .select_from(Timesheet)
            .join(Employee, Timesheet.employee_id == Employee.id)
            .where(
                Employee.manager_id == manager.id,
                Timesheet.status == TimesheetStatus.SUBMITTED.value,
            )
        )
        return result.scalar_one()

    async def direct_reports(self, manager_username: str) -> Sequence[Employee]:
        """Active employees whose manager of record is the caller."""
        manager = await self.get_employee(manager_username)
        result = await self.session.execute(
            select(Employee)
            .where(Employee.manager_id == manager.id, Employee.is_active.is_(True))
            .order_by(Employee.last_name, Employee.first_name, Employee.id)
        )
        return result.scalars().all()

    async def direct_report_count(self, manager_username: str) -> int:
        manager = await self.get_employee(manager_username)
        result = await self.session.execute(
            select(func.count())
            .select_from(Employee)
            .where(Employee.manager_id == manager.id, Employee.is_active.is_(True))
        )
        return result.scalar_one()

    async def approved_for_week(self, week_start: date) -> Sequence[Timesheet]:
        """APPROVED timesheets starting on ``week_start``."""
        result = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.week_start_date == week_start,
                Timesheet.status == TimesheetStatus.APPROVED.value,
            )
            .order_by(Timesheet.employee_id)
        )
        return result.scalars().all()

    # ========================================================================
    # Mutations
    # ========================================================================

    async def update_entries(
        self,
        timesheet_id: int,
        entries: Sequence[EntryInput],
        requester_username: str | None = None,
    ) -> Timesheet:
        """Replace all entries and recompute total hours.

        Raises:
            NotOwnerError: Requester does not own the timesheet
            NotEditableError: Timesheet is not DRAFT or DENIED
            InvalidEntryDateError: A work date lies outside the week
            DuplicateEntryDateError: A work date appears more than once
        """
        timesheet = await self.get_by_id(timesheet_id)
        if requester_username is not None:
            requester = await self.get_employee(requester_username)
            if timesheet.employee_id != requester.id:
                raise NotOwnerError()

        if not TimesheetStateMachine.can_edit(timesheet.status):
            raise NotEditableError(timesheet.status)

        seen: set[date] = set()
        for entry in entries:
            if not timesheet.covers(entry.work_date):
                raise InvalidEntryDateError(
                    entry.work_date, timesheet.week_start_date, timesheet.week_end_date
                )
            if entry.work_date in seen:
                raise DuplicateEntryDateError(entry.work_date)
            seen.add(entry.work_date)

        # Lock the row against a concurrent submit while entries are replaced
        locked = await self.session.execute(
            update(Timesheet)
            .where(
                Timesheet.id == timesheet.id,
                Timesheet.status.in_([s.value for s in TimesheetStateMachine.EDITABLE]),
            )
            .values(updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if locked.rowcount == 0:
            await self.session.refresh(timesheet)
            raise NotEditableError(timesheet.status)

        # Delete what is stored now, not what was loaded before the lock
        await self.session.execute(
            delete(TimesheetEntry).where(TimesheetEntry.timesheet_id == timesheet.id)
        )
        await self.session.refresh(timesheet, ["entries"])

        for entry in entries:
            timesheet.entries.append(
                TimesheetEntry(
                    work_date=entry.work_date,
                    hours_worked=entry.hours_worked,
                    description=entry.description,
                )
            )
        timesheet.total_hours = sum(
            (e.hours_worked for e in entries), Decimal("0.00")
        ).quantize(Decimal("0.01"))
        await self.session.flush()
        await self.session.refresh(timesheet)

        logger.info(
            "Updated timesheet %d: %d entries, %s hours",
            timesheet.id,
            len(entries),
            timesheet.total_hours,
        )
        return timesheet

    async def submit(self, timesheet_id: int, requester_username: str) -> Timesheet:
        """Submit a DRAFT or DENIED timesheet for review.

        Raises:
            NotOwnerError: Requester does not own the timesheet
            NotSubmittableError: Status is not DRAFT or DENIED
            EmptyTimesheetError: Timesheet has no entries
        """
        timesheet = await self.get_by_id(timesheet_id)
        requester = await self.get_employee(requester_username)
        if timesheet.employee_id != requester.id:
            raise NotOwnerError()
        if not TimesheetStateMachine.can_submit(timesheet.status):
            raise NotSubmittableError(timesheet.status)
        if not timesheet.entries:
            raise EmptyTimesheetError()

        has_entries = (
            select(TimesheetEntry.id)
            .where(TimesheetEntry.timesheet_id == timesheet.id)
            .exists()
        )
        try:
            await self._transition(
                timesheet,
                TimesheetStatus.SUBMITTED,
                NotSubmittableError,
                has_entries,
                submitted_at=utcnow(),
            )
        except NotSubmittableError as e:
            # Status unchanged means the entries were cleared concurrently
            if TimesheetStateMachine.can_submit(e.status):
                raise EmptyTimesheetError() from e
            raise
        logger.info("Timesheet %d submitted by %s", timesheet.id, requester_username)
        return timesheet

    async def approve(self, timesheet_id: int, reviewer_username: str) -> Timesheet:
        """Approve a SUBMITTED timesheet of a direct report.

        Raises:
            NotReviewableError: Status is not SUBMITTED
            NotManagerOfRecordError: Reviewer is not the owner's manager
        """
        timesheet, reviewer = await self._load_for_review(
            timesheet_id, reviewer_username, "approve"
        )
        await self._transition(
            timesheet,
            TimesheetStatus.APPROVED,
            NotReviewableError,
            reviewed_at=utcnow(),
            reviewed_by_id=reviewer.id,
            denial_reason=None,
        )
        logger.info("Timesheet %d approved by %s", timesheet.id, reviewer_username)
        return timesheet

    async def deny(self, timesheet_id: int, reviewer_username: str, reason: str) -> Timesheet:
        """Deny a SUBMITTED timesheet of a direct report with a reason.

        Raises:
            NotReviewableError: Status is not SUBMITTED
            NotManagerOfRecordError: Reviewer is not the owner's manager
        """
        timesheet, reviewer = await self._load_for_review(
            timesheet_id, reviewer_username, "deny"
        )
        await self._transition(
            timesheet,
            TimesheetStatus.DENIED,
            NotReviewableError,
            reviewed_at=utcnow(),
            reviewed_by_id=reviewer.id,
            denial_reason=reason,
        )
        logger.info("Timesheet %d denied by %s", timesheet.id, reviewer_username)
        return timesheet

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _load_for_review(
        self, timesheet_id: int, reviewer_username: str, action: str
    ) -> tuple[Timesheet, Employee]:
        timesheet = await self.get_by_id(timesheet_id)
        reviewer = await self.get_employee(reviewer_username)
        if not TimesheetStateMachine.can_review(timesheet.status):
            raise NotReviewableError(timesheet.status)
        if timesheet.employee.manager_id != reviewer.id:
            logger.warning(
                "%s tried to %s timesheet %d of a non-report",
                reviewer_username,
                action,
                timesheet.id,
            )
            raise NotManagerOfRecordError(action)
        return timesheet, reviewer

    async def _transition(
        self,
        timesheet: Timesheet,
        to_status: TimesheetStatus,
        conflict_error: type[StateConflictError],
        *conditions: ColumnElement[bool],
        **values: object,
    ) -> None:
        """Compare-and-set the status, raising ``conflict_error`` if it moved.

        Extra ``conditions`` are checked in the same UPDATE.
        """
        sources = [s.value for s in TimesheetStateMachine.sources_of(to_status)]
        result = await self.session.execute(
            update(Timesheet)
            .where(Timesheet.id == timesheet.id, Timesheet.status.in_(sources), *conditions)
            .values(status=to_status.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.refresh(timesheet)
            logger.warning(
                "Timesheet %d in %s could not move to %s",
                timesheet.id,
                timesheet.status,
                to_status.value,
            )
            raise conflict_error(timesheet.status)
        await self.session.refresh(timesheet)
