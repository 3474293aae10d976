"""Tests for the role to capability policy."""

import pytest

from hrms.authorization import (
    ROLE_CAPABILITIES,
    Capability,
    Role,
    has_capability,
    role_from_authority,
)


class TestRolePolicy:
    """Test which roles hold which capabilities."""

    @pytest.mark.parametrize("role", list(Role))
    def test_every_role_has_self_service(self, role):
        assert has_capability([role], Capability.TIMESHEET_SELF_SERVICE)
        assert has_capability([role], Capability.PAYROLL_SELF_SERVICE)

    def test_review_requires_manager_or_admin(self):
        assert not has_capability([Role.EMPLOYEE], Capability.TIMESHEET_REVIEW)
        assert has_capability([Role.MANAGER], Capability.TIMESHEET_REVIEW)
        assert has_capability([Role.ADMIN], Capability.TIMESHEET_REVIEW)

    def test_payroll_admin_requires_admin(self):
        assert not has_capability([Role.EMPLOYEE], Capability.PAYROLL_ADMIN)
        assert not has_capability([Role.MANAGER], Capability.PAYROLL_ADMIN)
        assert has_capability([Role.ADMIN], Capability.PAYROLL_ADMIN)

    def test_no_roles_no_capabilities(self):
        for capability in Capability:
            assert not has_capability([], capability)

    def test_any_role_grants(self):
        assert has_capability([Role.EMPLOYEE, Role.ADMIN], Capability.PAYROLL_ADMIN)

    def test_every_role_is_in_the_table(self):
        assert set(ROLE_CAPABILITIES) == set(Role)


class TestAuthorities:
    """Test ROLE_ prefixed claim values."""

    def test_authority_format(self):
        assert Role.MANAGER.authority == "ROLE_MANAGER"

    def test_parse_authority(self):
        assert role_from_authority("ROLE_ADMIN") is Role.ADMIN
        assert role_from_authority(" ROLE_EMPLOYEE") is Role.EMPLOYEE

    def test_unknown_authority_ignored(self):
        assert role_from_authority("ROLE_SUPERUSER") is None
        assert role_from_authority("") is None
