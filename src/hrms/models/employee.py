"""Employee and pay info models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.authorization import MANAGER_ROLES, Role
from hrms.exceptions import ValidationError
from hrms.models.base import AuditMixin, Base

if TYPE_CHECKING:
    from hrms.models.auth import RefreshToken
    from hrms.models.payroll import Payroll
    from hrms.models.timesheet import Timesheet


class InvalidManagerError(ValidationError):
    """Raised when an employee would report to a non-manager."""

    code = "INVALID_MANAGER"


class Employee(Base, AuditMixin):
    """An employee account and its credentials."""

    __tablename__ = "employees"
    __table_args__ = (
        CheckConstraint(
            "role IN ('EMPLOYEE', 'MANAGER', 'ADMIN')",
            name="ck_employees_role",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.EMPLOYEE.value)
    # Lookup reference only; deleting a manager leaves reports unassigned
    manager_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_first_login: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Relationships
    pay_info: Mapped[PayInfo | None] = relationship(
        back_populates="employee",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    timesheets: Mapped[list[Timesheet]] = relationship(
        back_populates="employee",
        foreign_keys="Timesheet.employee_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    payrolls: Mapped[list[Payroll]] = relationship(
        back_populates="employee",
        foreign_keys="Payroll.employee_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    refresh_tokens: Mapped[list[RefreshToken]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def assign_manager(self, manager: Employee | None) -> None:
        """Set the direct manager, which must hold a managing role."""
        if manager is None:
            self.manager_id = None
            return
        if manager.role_enum not in MANAGER_ROLES:
            raise InvalidManagerError(
                f"Employee {manager.username} has role {manager.role} and cannot manage others"
            )
        if manager.id is not None and manager.id == self.id:
            raise InvalidManagerError("An employee cannot manage themselves")
        self.manager_id = manager.id


class PayInfo(Base, AuditMixin):
    """Compensation details used to resolve an hourly rate."""

    __tablename__ = "pay_info"
    __table_args__ = (
        CheckConstraint(
            "salary IS NULL OR salary >= 0",
            name="ck_pay_info_salary",
        ),
        CheckConstraint(
            "hourly_rate IS NULL OR hourly_rate >= 0",
            name="ck_pay_info_hourly_rate",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    salary: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    pay_frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="WEEKLY")
    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default="DIRECT_DEPOSIT"
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="pay_info")
