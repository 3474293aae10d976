"""Role to capability policy."""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class Role(str, Enum):
    """Employee roles."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"

    @property
    def authority(self) -> str:
        """Role name as carried in access token claims."""
        return f"ROLE_{self.value}"


class Capability(str, Enum):
    """Operations guarded at the API boundary."""

    TIMESHEET_SELF_SERVICE = "timesheet_self_service"
    PAYROLL_SELF_SERVICE = "payroll_self_service"
    TIMESHEET_REVIEW = "timesheet_review"
    PAYROLL_ADMIN = "payroll_admin"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.EMPLOYEE: frozenset({
        Capability.TIMESHEET_SELF_SERVICE,
        Capability.PAYROLL_SELF_SERVICE,
    }),
    Role.MANAGER: frozenset({
        Capability.TIMESHEET_SELF_SERVICE,
        Capability.PAYROLL_SELF_SERVICE,
        Capability.TIMESHEET_REVIEW,
    }),
    Role.ADMIN: frozenset({
        Capability.TIMESHEET_SELF_SERVICE,
        Capability.PAYROLL_SELF_SERVICE,
        Capability.TIMESHEET_REVIEW,
        Capability.PAYROLL_ADMIN,
    }),
}

# Roles allowed to be set as someone's manager
MANAGER_ROLES = frozenset({Role.MANAGER, Role.ADMIN})


def role_from_authority(authority: str) -> Role | None:
    """Parse a ``ROLE_X`` claim value, returning None for unknown roles."""
    name = authority.strip().removeprefix("ROLE_")
    try:
        return Role(name)
    except ValueError:
        return None


def has_capability(roles: Iterable[Role], capability: Capability) -> bool:
    """Check whether any of the roles grants the capability."""
    return any(capability in ROLE_CAPABILITIES.get(role, frozenset()) for role in roles)
