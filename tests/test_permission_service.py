"""Tests for the permission catalogue and default roles."""

import pytest

from hr_payroll.services.errors import ConflictError, NotFoundError
from hr_payroll.services.permission_service import ALL_PERMISSIONS, PermissionService

pytestmark = pytest.mark.asyncio


class TestSeedDefaults:
    """Seeding is idempotent."""

    async def test_seed_twice(self, session):
        service = PermissionService(session)
        assert await service.seed_defaults() == {"permissions": 76, "roles": 4}
        assert await service.seed_defaults() == {"permissions": 0, "roles": 0}

    async def test_missing_permissions_before_and_after_seed(self, session):
        service = PermissionService(session)
        assert await service.missing_permissions() == list(ALL_PERMISSIONS)
        await service.seed_defaults()
        assert await service.missing_permissions() == []

    async def test_permissions_are_module_dot_action(self):
        assert "payroll.read" in ALL_PERMISSIONS
        assert all(name.count(".") == 1 for name in ALL_PERMISSIONS)


class TestRoles:
    """Default role grants."""

    async def test_admin_has_everything(self, session):
        service = PermissionService(session)
        await service.seed_defaults()
        user = await service.create_user("Admin", "admin@example.org", ["admin"])

        assert user.permission_names == set(ALL_PERMISSIONS)

    async def test_employee_is_self_service_only(self, session):
        service = PermissionService(session)
        await service.seed_defaults()
        user = await service.create_user("Staff", "staff@example.org", ["employee"])

        assert user.has_permission("leave_request.create")
        assert not user.has_permission("payroll.read")
        assert not user.has_permission("leave_request.delete")

    async def test_hr_manager_cannot_manage_users(self, session):
        service = PermissionService(session)
        await service.seed_defaults()
        user = await service.create_user("HR", "hr@example.org", ["hr-manager"])

        assert user.has_permission("payroll.create")
        assert not user.has_permission("user.create")


class TestUsers:
    """User creation."""

    async def test_duplicate_email(self, session):
        service = PermissionService(session)
        await service.create_user("A", "same@example.org")
        with pytest.raises(ConflictError):
            await service.create_user("B", "same@example.org")

    async def test_unknown_role(self, session):
        with pytest.raises(NotFoundError):
            await PermissionService(session).create_user("A", "a@example.org", ["superuser"])
