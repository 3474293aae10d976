"""ORM models."""

from hrms.models.base import AuditMixin, Base, TimestampMixin, utcnow
from hrms.models.employee import Employee, InvalidManagerError, PayInfo
from hrms.models.auth import RefreshToken
from hrms.models.timesheet import Timesheet, TimesheetEntry
from hrms.models.payroll import Payroll

__all__ = [
    "AuditMixin",
    "Base",
    "TimestampMixin",
    "utcnow",
    "Employee",
    "InvalidManagerError",
    "PayInfo",
    "RefreshToken",
    "Timesheet",
    "TimesheetEntry",
    "Payroll",
]
