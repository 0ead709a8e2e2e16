"""Tests for role and tenant checks."""

import pytest

from core.errors import AccessDenied
from core.models import StaffRole
from core.permissions import (
    COMPLETION_ROLES,
    INTAKE_ROLES,
    MANAGER_ONLY,
    require_role,
    require_same_tenant,
)
from tests.conftest import OTHER_TENANT_ID


class TestRequireRole:

    def test_allowed_role_passes(self, writer, manager):
        require_role(writer, INTAKE_ROLES, "intake")
        require_role(manager, INTAKE_ROLES, "intake")
        require_role(manager, COMPLETION_ROLES, "complete")

    def test_writer_cannot_complete(self, writer):
        with pytest.raises(AccessDenied) as exc:
            require_role(writer, COMPLETION_ROLES, "complete")
        assert exc.value.message == "Only technicians and managers can complete jobs."

    def test_technician_cannot_create_tickets(self, technician):
        with pytest.raises(AccessDenied) as exc:
            require_role(technician, INTAKE_ROLES, "intake")
        assert "service writers" in exc.value.message

    def test_manager_only_actions_default_reason(self, technician):
        with pytest.raises(AccessDenied) as exc:
            require_role(technician, MANAGER_ONLY, "reports")
        assert exc.value.message == "Manager access required."
        assert exc.value.status_code == 403


class TestRequireSameTenant:

    def test_same_tenant_passes(self, manager):
        require_same_tenant(manager, manager.tenant_id, "staff")

    def test_unknown_tenant_passes(self, manager):
        require_same_tenant(manager, None, "staff")

    def test_other_tenant_refused(self, manager):
        with pytest.raises(AccessDenied):
            require_same_tenant(manager, OTHER_TENANT_ID, "staff")


class TestRoleProperties:

    def test_home_routes(self):
        assert StaffRole.SERVICE_WRITER.home == "/intake"
        assert StaffRole.TECHNICIAN.home == "/queue"
        assert StaffRole.MANAGER.home == "/admin"
