"""Refresh token model."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrms.models.base import Base, TimestampMixin, utcnow

if TYPE_CHECKING:
    from hrms.models.employee import Employee


class RefreshToken(Base, TimestampMixin):
    """Long-lived opaque credential that can mint new access tokens."""

    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expiry_date: Mapped[datetime] = mapped_column(nullable=False)
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="refresh_tokens", lazy="joined")

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expiry_date

    def is_valid(self, now: datetime | None = None) -> bool:
        """A token is usable iff it is not revoked and not yet expired."""
        return not self.revoked and not self.is_expired(now)
