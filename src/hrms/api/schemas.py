"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

# Hours and money go out as JSON numbers
Amount = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ============================================================================
# Base schemas
# ============================================================================


class ApiModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case accepted on input."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorResponse(ApiModel):
    """Standard error response."""

    detail: str
    code: str
    status: int
    error: str
    path: str
    timestamp: datetime
    validation_errors: dict[str, str] | None = None


class MessageResponse(ApiModel):
    message: str


# ============================================================================
# Auth schemas
# ============================================================================


class LoginRequest(ApiModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshTokenRequest(ApiModel):
    refresh_token: str = Field(min_length=1)


class EmployeeSummary(ApiModel):
    """Employee details returned with a token pair."""

    id: int
    employee_id: str
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_first_login: bool


class AuthResponse(ApiModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    employee: EmployeeSummary


# ============================================================================
# Timesheet schemas
# ============================================================================


class TimesheetEntryInput(ApiModel):
    work_date: date
    hours_worked: Decimal = Field(gt=0, le=24, decimal_places=2)
    description: str | None = Field(default=None, max_length=500)


class TimesheetUpdateRequest(ApiModel):
    entries: list[TimesheetEntryInput]


class DenyRequest(ApiModel):
    reason: str = Field(min_length=10, max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: str) -> str:
        stripped = value.strip()
        if len(stripped) < 10:
            raise ValueError("Denial reason must be between 10 and 500 characters")
        return stripped


class TimesheetEntryResponse(ApiModel):
    id: int
    work_date: date
    hours_worked: Amount
    description: str | None = None


class TimesheetResponse(ApiModel):
    id: int
    employee_id: int
    employee_name: str
    week_start_date: date
    week_end_date: date
    total_hours: Amount
    status: str
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by_name: str | None = None
    denial_reason: str | None = None
    entries: list[TimesheetEntryResponse] = []

    @classmethod
    def from_timesheet(cls, timesheet: Any) -> "TimesheetResponse":
        return cls(
            id=timesheet.id,
            employee_id=timesheet.employee_id,
            employee_name=timesheet.employee.full_name,
            week_start_date=timesheet.week_start_date,
            week_end_date=timesheet.week_end_date,
            total_hours=timesheet.total_hours,
            status=timesheet.status,
            submitted_at=timesheet.submitted_at,
            reviewed_at=timesheet.reviewed_at,
            reviewed_by_name=timesheet.reviewed_by.full_name if timesheet.reviewed_by else None,
            denial_reason=timesheet.denial_reason,
            entries=[TimesheetEntryResponse.model_validate(e) for e in timesheet.entries],
        )


class CountResponse(ApiModel):
    count: int


class DirectReportResponse(ApiModel):
    id: int
    employee_id: str
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    hire_date: date | None = None


class ManagerStatisticsResponse(ApiModel):
    pending_timesheets: int
    direct_reports: int


# ============================================================================
# Payroll schemas
# ============================================================================


class PayPeriod(ApiModel):
    start_date: date
    end_date: date


class EmployeePayrollPreview(ApiModel):
    employee_id: int
    name: str
    hours_worked: Amount
    hourly_rate: Amount
    gross_pay: Amount
    tax_deduction: Amount
    other_deductions: Amount
    bonus: Amount
    net_pay: Amount


class PayrollPreviewResponse(ApiModel):
    pay_period: PayPeriod
    employees: list[EmployeePayrollPreview]
    total_gross_pay: Amount
    total_net_pay: Amount
    employee_count: int

    @classmethod
    def from_summary(cls, summary: Any) -> "PayrollPreviewResponse":
        return cls(
            pay_period=PayPeriod(
                start_date=summary.pay_period_start,
                end_date=summary.pay_period_end,
            ),
            employees=[
                EmployeePayrollPreview(
                    employee_id=line.employee_id,
                    name=line.name,
                    hours_worked=line.breakdown.hours_worked,
                    hourly_rate=line.breakdown.hourly_rate,
                    gross_pay=line.breakdown.gross_pay,
                    tax_deduction=line.breakdown.tax_deduction,
                    other_deductions=line.breakdown.other_deductions,
                    bonus=line.breakdown.bonus,
                    net_pay=line.breakdown.net_pay,
                )
                for line in summary.employees
            ],
            total_gross_pay=summary.total_gross_pay,
            total_net_pay=summary.total_net_pay,
            employee_count=summary.employee_count,
        )


class PayrollRunRequest(ApiModel):
    week_start_date: date
    payment_date: date

    @field_validator("payment_date")
    @classmethod
    def payment_date_not_in_past(cls, value: date) -> date:
        if value < date.today():
            raise ValueError("Payment date cannot be in the past")
        return value


class PayrollRunResponse(ApiModel):
    message: str
    processed_count: int
    total_amount: Amount
    processed_at: datetime


class PayrollResponse(ApiModel):
    id: int
    employee_id: int
    employee_name: str
    pay_period_start: date
    pay_period_end: date
    gross_pay: Amount
    tax_deduction: Amount
    other_deductions: Amount
    bonus: Amount
    net_pay: Amount
    status: str
    processed_at: datetime | None = None
    payment_date: date | None = None

    @classmethod
    def from_payroll(cls, payroll: Any) -> "PayrollResponse":
        return cls(
            id=payroll.id,
            employee_id=payroll.employee_id,
            employee_name=payroll.employee.full_name,
            pay_period_start=payroll.pay_period_start,
            pay_period_end=payroll.pay_period_end,
            gross_pay=payroll.gross_pay,
            tax_deduction=payroll.tax_deduction,
            other_deductions=payroll.other_deductions,
            bonus=payroll.bonus,
            net_pay=payroll.net_pay,
            status=payroll.status,
            processed_at=payroll.processed_at,
            payment_date=payroll.payment_date,
        )


class CurrentWeekPayrollResponse(ApiModel):
    week_start_date: date
    week_end_date: date
    approved_timesheets: int
    processed: bool
    processed_count: int
    total_net_pay: Amount
