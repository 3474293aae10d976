"""Payroll calculation."""

from hrms.calculators.pay_calculator import (
    OTHER_DEDUCTIONS_RATE,
    TAX_RATE,
    PayBreakdown,
    PayInfoMissingError,
    calculate_pay,
    resolve_hourly_rate,
)

__all__ = [
    "OTHER_DEDUCTIONS_RATE",
    "TAX_RATE",
    "PayBreakdown",
    "PayInfoMissingError",
    "calculate_pay",
    "resolve_hourly_rate",
]
