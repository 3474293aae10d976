"""Weekly pay arithmetic: hourly rate resolution, gross, deductions and net."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from hrms.exceptions import NotFoundError

TAX_RATE = Decimal("0.20")
OTHER_DEDUCTIONS_RATE = Decimal("0.05")
WEEKS_PER_YEAR = Decimal("52")
HOURS_PER_WEEK = Decimal("40")

CENTS = Decimal("0.01")
WEEKLY_SALARY_PRECISION = Decimal("0.0001")


class PayInfoMissingError(NotFoundError):
    """Raised when an employee has no usable pay rate."""

    code = "PAY_INFO_MISSING"

    def __init__(self, employee_id: int | str):
        self.employee_id = employee_id
        super().__init__(f"Pay information not found for employee: {employee_id}")


@dataclass(frozen=True)
class PayBreakdown:
    """Result of a pay calculation for one timesheet."""

    hours_worked: Decimal
    hourly_rate: Decimal
    gross_pay: Decimal
    tax_deduction: Decimal
    other_deductions: Decimal
    bonus: Decimal
    net_pay: Decimal


def money(amount: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def resolve_hourly_rate(
    employee_id: int | str,
    hourly_rate: Decimal | None,
    salary: Decimal | None,
) -> Decimal:
    """Pick the hourly rate, deriving it from annual salary when unset.

    Salary is converted as ``salary / 52`` (4 dp) then ``/ 40`` (2 dp),
    both rounded half-up.

    Raises:
        PayInfoMissingError: If neither an hourly rate nor a salary is set
    """
    if hourly_rate is not None and hourly_rate > 0:
        return money(hourly_rate)
    if salary is not None and salary > 0:
        weekly = (salary / WEEKS_PER_YEAR).quantize(
            WEEKLY_SALARY_PRECISION, rounding=ROUND_HALF_UP
        )
        return money(weekly / HOURS_PER_WEEK)
    raise PayInfoMissingError(employee_id)


def calculate_pay(
    hours_worked: Decimal,
    hourly_rate: Decimal,
    bonus: Decimal = Decimal("0.00"),
) -> PayBreakdown:
    """Compute gross, flat-rate deductions and net for one week."""
    gross = money(hours_worked * hourly_rate)
    tax = money(gross * TAX_RATE)
    other = money(gross * OTHER_DEDUCTIONS_RATE)
    bonus = money(bonus)
    net = money(gross + bonus - tax - other)

    return PayBreakdown(
        hours_worked=hours_worked,
        hourly_rate=hourly_rate,
        gross_pay=gross,
        tax_deduction=tax,
        other_deductions=other,
        bonus=bonus,
        net_pay=net,
    )
