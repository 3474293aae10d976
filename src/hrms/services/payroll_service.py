"""Payroll preview, run and payment tracking."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.calculators.pay_calculator import PayBreakdown, calculate_pay, resolve_hourly_rate
from hrms.exceptions import NotFoundError, StateConflictError, ValidationError
from hrms.models import Employee, Payroll, Timesheet, utcnow
from hrms.services.state_machine import PayrollStateMachine, PayrollStatus
from hrms.services.timesheet_service import TimesheetService, week_start_for

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# ============================================================================
# Errors
# ============================================================================


class PayrollNotFoundError(NotFoundError):
    code = "PAYROLL_NOT_FOUND"

    def __init__(self, payroll_id: int):
        self.payroll_id = payroll_id
        super().__init__(f"Payroll not found with id: {payroll_id}")


class InvalidWeekStartError(ValidationError):
    code = "INVALID_WEEK_START"

    def __init__(self, week_start: date):
        self.week_start = week_start
        super().__init__(f"Pay period must start on a Monday, got {week_start}")


class NoApprovedTimesheetsError(ValidationError):
    code = "NO_APPROVED_TIMESHEETS"

    def __init__(self):
        super().__init__("No approved timesheets found for the specified week")


class AlreadyProcessedError(StateConflictError):
    code = "PAYROLL_ALREADY_PROCESSED"

    def __init__(self):
        super().__init__("Payroll already processed for this period")


class NotProcessedError(StateConflictError):
    code = "PAYROLL_NOT_PROCESSED"

    def __init__(self, status: str):
        self.status = status
        super().__init__("Only processed payrolls can be marked as paid")


# ============================================================================
# Result types
# ============================================================================


@dataclass(frozen=True)
class EmployeePay:
    """Calculated pay for one employee's approved timesheet."""

    employee_id: int
    name: str
    timesheet_id: int
    breakdown: PayBreakdown


@dataclass
class PayrollSummary:
    """Preview of a week's payroll."""

    pay_period_start: date
    pay_period_end: date
    employees: list[EmployeePay] = field(default_factory=list)

    @property
    def total_gross_pay(self) -> Decimal:
        return sum((e.breakdown.gross_pay for e in self.employees), ZERO)

    @property
    def total_net_pay(self) -> Decimal:
        return sum((e.breakdown.net_pay for e in self.employees), ZERO)

    @property
    def employee_count(self) -> int:
        return len(self.employees)


@dataclass(frozen=True)
class PayrollRunResult:
    """Outcome of a committed payroll run."""

    message: str
    processed_count: int
    total_amount: Decimal
    processed_at: datetime
    pay_period_start: date
    pay_period_end: date


@dataclass(frozen=True)
class CurrentWeekStatus:
    """Payroll state for the week containing today."""

    week_start_date: date
    week_end_date: date
    approved_timesheets: int
    processed: bool
    processed_count: int
    total_net_pay: Decimal


# ============================================================================
# Service
# ============================================================================


class PayrollService:
    """Service for calculating and committing weekly payroll.

    Key invariants:
    1. A run only includes APPROVED timesheets for the week
    2. At most one PROCESSED/PAID record per (employee, period), enforced by
       a partial unique index; a concurrent second run fails at flush
    3. Preview and run produce identical figures for the same inputs
    4. Any calculation error aborts the whole run
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.timesheets = TimesheetService(session)

    async def preview(self, week_start: date) -> PayrollSummary:
        """Calculate the week's payroll without persisting anything."""
        self._check_week_start(week_start)
        approved = await self.timesheets.approved_for_week(week_start)
        summary = self._calculate(week_start, approved)
        logger.debug(
            "Payroll preview for %s: %d employees, net %s",
            week_start,
            summary.employee_count,
            summary.total_net_pay,
        )
        return summary

    async def run(
        self,
        week_start: date,
        payment_date: date,
        processor_username: str,
    ) -> PayrollRunResult:
        """Persist PROCESSED payroll records for every approved timesheet.

        Raises:
            NotFoundError: Processor is unknown
            InvalidWeekStartError: week_start is not a Monday
            NoApprovedTimesheetsError: Nothing approved for the week
            AlreadyProcessedError: The period was already run
            PayInfoMissingError: An included employee has no pay rate
        """
        self._check_week_start(week_start)
        processor = await self.timesheets.get_employee(processor_username)
        week_end = week_start + timedelta(days=6)

        approved = await self.timesheets.approved_for_week(week_start)
        if not approved:
            raise NoApprovedTimesheetsError()

        if await self._finalized_exists(week_start, week_end):
            raise AlreadyProcessedError()

        summary = self._calculate(week_start, approved)

        await self.session.execute(
            delete(Payroll)
            .where(Payroll.status == PayrollStatus.PREVIEW.value)
            .execution_options(synchronize_session=False)
        )

        processed_at = utcnow()
        for line in summary.employees:
            pay = line.breakdown
            self.session.add(
                Payroll(
                    employee_id=line.employee_id,
                    pay_period_start=week_start,
                    pay_period_end=week_end,
                    gross_pay=pay.gross_pay,
                    tax_deduction=pay.tax_deduction,
                    other_deductions=pay.other_deductions,
                    bonus=pay.bonus,
                    net_pay=pay.net_pay,
                    status=PayrollStatus.PROCESSED.value,
                    processed_at=processed_at,
                    processed_by_id=processor.id,
                    payment_date=payment_date,
                )
            )

        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Concurrent payroll run detected for %s", week_start)
            raise AlreadyProcessedError() from e

        logger.info(
            "Payroll processed for %s by %s: %d employees, net %s",
            week_start,
            processor_username,
            summary.employee_count,
            summary.total_net_pay,
        )
        return PayrollRunResult(
            message="Payroll processed successfully",
            processed_count=summary.employee_count,
            total_amount=summary.total_net_pay,
            processed_at=processed_at,
            pay_period_start=week_start,
            pay_period_end=week_end,
        )

    async def mark_paid(self, payroll_id: int) -> Payroll:
        """Move a PROCESSED record to PAID.

        Raises:
            PayrollNotFoundError: No such record
            NotProcessedError: Record is not PROCESSED
        """
        payroll = await self.get_by_id(payroll_id)
        if not PayrollStateMachine.can_transition(payroll.status, PayrollStatus.PAID):
            raise NotProcessedError(payroll.status)

        result = await self.session.execute(
            update(Payroll)
            .where(Payroll.id == payroll_id, Payroll.status == PayrollStatus.PROCESSED.value)
            .values(status=PayrollStatus.PAID.value)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(payroll)
        if result.rowcount == 0:
            raise NotProcessedError(payroll.status)

        logger.info("Payroll %d marked as paid", payroll_id)
        return payroll

    async def get_by_id(self, payroll_id: int) -> Payroll:
        payroll = await self.session.get(Payroll, payroll_id)
        if payroll is None:
            raise PayrollNotFoundError(payroll_id)
        return payroll

    async def history(self, username: str) -> Sequence[Payroll]:
        """An employee's payroll records, newest period first."""
        employee = await self.timesheets.get_employee(username)
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.employee_id == employee.id)
            .order_by(Payroll.pay_period_start.desc())
        )
        return result.scalars().all()

    async def history_by_date_range(self, start: date, end: date) -> Sequence[Payroll]:
        """Finalized records whose period lies within [start, end]."""
        if end < start:
            raise ValidationError("End date must not be before start date")
        result = await self.session.execute(
            select(Payroll)
            .where(
                Payroll.status.in_([s.value for s in PayrollStateMachine.FINALIZED]),
                Payroll.pay_period_start >= start,
                Payroll.pay_period_end <= end,
            )
            .order_by(Payroll.pay_period_start.desc(), Payroll.employee_id)
        )
        return result.scalars().all()

    async def current_week_status(self, today: date | None = None) -> CurrentWeekStatus:
        week_start = week_start_for(today or date.today())
        week_end = week_start + timedelta(days=6)
        approved = await self.timesheets.approved_for_week(week_start)

        result = await self.session.execute(
            select(func.count(), func.coalesce(func.sum(Payroll.net_pay), 0)).where(
                Payroll.pay_period_start == week_start,
                Payroll.pay_period_end == week_end,
                Payroll.status.in_([s.value for s in PayrollStateMachine.FINALIZED]),
            )
        )
        count, total = result.one()
        return CurrentWeekStatus(
            week_start_date=week_start,
            week_end_date=week_end,
            approved_timesheets=len(approved),
            processed=count > 0,
            processed_count=count,
            total_net_pay=Decimal(str(total)).quantize(Decimal("0.01")),
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    @staticmethod
    def _check_week_start(week_start: date) -> None:
        if week_start.weekday() != 0:
            raise InvalidWeekStartError(week_start)

    def _calculate(self, week_start: date, timesheets: Sequence[Timesheet]) -> PayrollSummary:
        summary = PayrollSummary(
            pay_period_start=week_start,
            pay_period_end=week_start + timedelta(days=6),
        )
        for timesheet in timesheets:
            employee: Employee = timesheet.employee
            pay_info = employee.pay_info
            rate = resolve_hourly_rate(
                employee.employee_id,
                pay_info.hourly_rate if pay_info else None,
                pay_info.salary if pay_info else None,
            )
            summary.employees.append(
                EmployeePay(
                    employee_id=employee.id,
                    name=employee.full_name,
                    timesheet_id=timesheet.id,
                    breakdown=calculate_pay(timesheet.total_hours, rate),
                )
            )
        return summary

    async def _finalized_exists(self, week_start: date, week_end: date) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(Payroll)
            .where(
                Payroll.pay_period_start == week_start,
                Payroll.pay_period_end == week_end,
                Payroll.status.in_([s.value for s in PayrollStateMachine.FINALIZED]),
            )
        )
        return result.scalar_one() > 0
