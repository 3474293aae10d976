"""API routes."""

from hrms.api.routes.auth import router as auth_router
from hrms.api.routes.health import router as health_router
from hrms.api.routes.manager import router as manager_router
from hrms.api.routes.payroll import admin_router as payroll_admin_router
from hrms.api.routes.payroll import employee_router as payroll_employee_router
from hrms.api.routes.timesheets import router as timesheets_router

__all__ = [
    "auth_router",
    "health_router",
    "manager_router",
    "payroll_admin_router",
    "payroll_employee_router",
    "timesheets_router",
]
