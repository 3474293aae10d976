"""Payroll record model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from hrms.models.employee import Employee


class Payroll(Base, TimestampMixin):
    """Pay for one employee over one pay period."""

    __tablename__ = "payroll"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PREVIEW', 'PROCESSED', 'PAID')",
            name="ck_payroll_status",
        ),
        CheckConstraint("pay_period_end >= pay_period_start", name="ck_payroll_period"),
        # At most one non-preview record per employee and period
        Index(
            "uq_payroll_employee_period_processed",
            "employee_id",
            "pay_period_start",
            "pay_period_end",
            unique=True,
            postgresql_where=text("status <> 'PREVIEW'"),
            sqlite_where=text("status <> 'PREVIEW'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pay_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(nullable=False)
    tax_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    bonus: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PREVIEW")
    processed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    processed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="payrolls",
        foreign_keys=[employee_id],
        lazy="joined",
    )
    processed_by: Mapped[Employee | None] = relationship(
        foreign_keys=[processed_by_id],
        lazy="joined",
    )
