"""HRMS services."""

from hrms.services.state_machine import (
    InvalidTransitionError,
    PayrollStateMachine,
    PayrollStatus,
    TimesheetStateMachine,
    TimesheetStatus,
)
from hrms.services.token_service import TokenService
from hrms.services.timesheet_service import TimesheetService
from hrms.services.payroll_service import PayrollService

__all__ = [
    "InvalidTransitionError",
    "PayrollStateMachine",
    "PayrollStatus",
    "TimesheetStateMachine",
    "TimesheetStatus",
    "TokenService",
    "TimesheetService",
    "PayrollService",
]
