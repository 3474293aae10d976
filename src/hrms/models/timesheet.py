"""Timesheet and timesheet entry models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.models.base import AuditMixin, Base, TimestampMixin

if TYPE_CHECKING:
    from hrms.models.employee import Employee


class Timesheet(Base, AuditMixin):
    """One employee's hours for one Monday-anchored week."""

    __tablename__ = "timesheets"
    __table_args__ = (
        UniqueConstraint("employee_id", "week_start_date", name="uq_timesheets_employee_week"),
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'APPROVED', 'DENIED')",
            name="ck_timesheets_status",
        ),
        CheckConstraint("week_end_date >= week_start_date", name="ck_timesheets_week"),
        CheckConstraint("total_hours >= 0", name="ck_timesheets_total_hours"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0.00")
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    denial_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    employee: Mapped[Employee] = relationship(
        back_populates="timesheets",
        foreign_keys=[employee_id],
        lazy="joined",
    )
    reviewed_by: Mapped[Employee | None] = relationship(
        foreign_keys=[reviewed_by_id],
        lazy="joined",
    )
    entries: Mapped[list[TimesheetEntry]] = relationship(
        back_populates="timesheet",
        lazy="selectin",
        order_by="TimesheetEntry.work_date",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def covers(self, work_date: date) -> bool:
        """Check whether a date falls inside this timesheet's week."""
        return self.week_start_date <= work_date <= self.week_end_date


class TimesheetEntry(Base, TimestampMixin):
    """Hours worked on one day of a timesheet week."""

    __tablename__ = "timesheet_entries"
    __table_args__ = (
        UniqueConstraint("timesheet_id", "work_date", name="uq_timesheet_entries_date"),
        CheckConstraint(
            "hours_worked > 0 AND hours_worked <= 24",
            name="ck_timesheet_entries_hours",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timesheet_id: Mapped[int] = mapped_column(
        ForeignKey("timesheets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    timesheet: Mapped[Timesheet] = relationship(back_populates="entries")
