"""HRMS service: timesheets, approvals and weekly payroll."""

__version__ = "0.1.0"
