"""Tests for weekly pay arithmetic."""

from decimal import Decimal

import pytest

from hrms.calculators.pay_calculator import (
    PayInfoMissingError,
    calculate_pay,
    resolve_hourly_rate,
)


class TestResolveHourlyRate:
    """Test hourly rate selection."""

    def test_hourly_rate_wins_over_salary(self):
        rate = resolve_hourly_rate(1, Decimal("31.25"), Decimal("120000"))
        assert rate == Decimal("31.25")

    def test_salary_converted_to_hourly(self):
        """120000 / 52 = 2307.6923 (4 dp), / 40 = 57.69 (2 dp)."""
        rate = resolve_hourly_rate(1, None, Decimal("120000"))
        assert rate == Decimal("57.69")

    def test_zero_hourly_rate_falls_back_to_salary(self):
        rate = resolve_hourly_rate(1, Decimal("0"), Decimal("52000"))
        assert rate == Decimal("25.00")

    def test_salary_rounding_is_half_up(self):
        # 50000 / 52 = 961.5384..., / 40 = 24.03846 -> 24.04
        rate = resolve_hourly_rate(1, None, Decimal("50000"))
        assert rate == Decimal("24.04")

    def test_missing_pay_info_raises(self):
        with pytest.raises(PayInfoMissingError) as exc_info:
            resolve_hourly_rate("EMP005", None, None)
        assert exc_info.value.employee_id == "EMP005"
        assert "EMP005" in str(exc_info.value)


class TestCalculatePay:
    """Test gross, deductions and net."""

    def test_hourly_example(self):
        pay = calculate_pay(Decimal("40"), Decimal("31.25"))

        assert pay.gross_pay == Decimal("1250.00")
        assert pay.tax_deduction == Decimal("250.00")
        assert pay.other_deductions == Decimal("62.50")
        assert pay.bonus == Decimal("0.00")
        assert pay.net_pay == Decimal("937.50")

    def test_salaried_example(self):
        rate = resolve_hourly_rate(1, None, Decimal("120000"))
        pay = calculate_pay(Decimal("40"), rate)

        assert pay.gross_pay == Decimal("2307.60")
        assert pay.tax_deduction == Decimal("461.52")
        assert pay.other_deductions == Decimal("115.38")
        assert pay.net_pay == Decimal("1730.70")

    def test_fractional_hours_round_each_component(self):
        # 7.5 * 19.99 = 149.925 -> 149.93
        pay = calculate_pay(Decimal("7.5"), Decimal("19.99"))

        assert pay.gross_pay == Decimal("149.93")
        assert pay.tax_deduction == Decimal("29.99")  # 29.986
        assert pay.other_deductions == Decimal("7.50")  # 7.4965
        assert pay.net_pay == Decimal("112.44")

    def test_net_equals_gross_minus_deductions(self):
        pay = calculate_pay(Decimal("37.25"), Decimal("22.10"))
        assert pay.net_pay == pay.gross_pay + pay.bonus - pay.tax_deduction - pay.other_deductions

    def test_bonus_is_added_to_net(self):
        pay = calculate_pay(Decimal("10"), Decimal("10"), bonus=Decimal("5"))
        assert pay.net_pay == Decimal("80.00")

    def test_zero_hours(self):
        pay = calculate_pay(Decimal("0"), Decimal("31.25"))
        assert pay.gross_pay == Decimal("0.00")
        assert pay.net_pay == Decimal("0.00")
