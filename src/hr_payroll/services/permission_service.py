"""Named permissions, default roles and user lookups."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.models import Permission, Role, User
from hr_payroll.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

MODULES = (
    "site",
    "department",
    "position",
    "employee",
    "employment",
    "grant",
    "allocation",
    "payroll",
    "leave_type",
    "leave_request",
    "leave_balance",
    "holiday",
    "travel_request",
    "personnel_action",
    "resignation",
    "holiday_compensation",
    "probation",
    "recycle_bin",
    "user",
)

ACTIONS = ("create", "read", "update", "delete")

ALL_PERMISSIONS = tuple(f"{module}.{action}" for module in MODULES for action in ACTIONS)


def _default_roles() -> dict[str, set[str]]:
    everything = set(ALL_PERMISSIONS)
    self_service = {"leave_request", "travel_request"}
    return {
        "admin": everything,
        "hr-manager": {p for p in everything if not p.startswith("user.")},
        "hr-assistant": (
            {p for p in everything if p.endswith(".read") and not p.startswith("user.")}
            | {f"{m}.{a}" for m in self_service for a in ("create", "update")}
        ),
        "employee": {f"{m}.{a}" for m in self_service for a in ("read", "create")},
    }


DEFAULT_ROLES = _default_roles()


class PermissionService:
    """Seeds the permission catalogue and resolves callers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def seed_defaults(self) -> dict[str, int]:
        """Create missing permissions and default roles; safe to run repeatedly."""
        result = await self.session.execute(select(Permission))
        permissions = {p.name: p for p in result.scalars().all()}
        created_permissions = 0
        for name in ALL_PERMISSIONS:
            if name not in permissions:
                module, action = name.split(".", 1)
                permissions[name] = Permission(
                    name=name, description=f"{action.capitalize()} {module.replace('_', ' ')}"
                )
                self.session.add(permissions[name])
                created_permissions += 1
        await self.session.flush()

        result = await self.session.execute(select(Role))
        roles = {r.name: r for r in result.scalars().all()}
        created_roles = 0
        for role_name, granted in DEFAULT_ROLES.items():
            role = roles.get(role_name)
            if role is None:
                role = Role(name=role_name, permissions=[])
                self.session.add(role)
                created_roles += 1
            have = {p.name for p in role.permissions}
            for name in sorted(granted - have):
                role.permissions.append(permissions[name])
        await self.session.flush()

        logger.info(
            "Seeded %d permission(s) and %d role(s)", created_permissions, created_roles
        )
        return {"permissions": created_permissions, "roles": created_roles}

    async def missing_permissions(self) -> list[str]:
        """Catalogue entries with no stored permission row."""
        stored = set(await self.session.scalars(select(Permission.name)))
        return [name for name in ALL_PERMISSIONS if name not in stored]

    async def get_role(self, name: str) -> Role:
        role = await self.session.scalar(select(Role).where(Role.name == name))
        if role is None:
            raise NotFoundError(f"Role '{name}' not found", role=name)
        return role

    async def create_user(
        self, name: str, email: str, roles: list[str] | None = None
    ) -> User:
        existing = await self.session.scalar(select(User).where(User.email == email))
        if existing is not None:
            raise ConflictError(f"User with email '{email}' already exists", email=email)
        user = User(name=name, email=email, is_active=True, roles=[])
        for role_name in roles or ():
            user.roles.append(await self.get_role(role_name))
        self.session.add(user)
        await self.session.flush()
        logger.info("Created user %s with roles %s", email, ", ".join(roles or ()) or "none")
        return user

    async def assign_role(self, user: User, role_name: str) -> User:
        role = await self.get_role(role_name)
        if role not in user.roles:
            user.roles.append(role)
            await self.session.flush()
        return user

    async def get_user_with_permissions(self, user_id: UUID) -> User | None:
        """Load a user with roles and permissions ready for checks."""
        return await self.session.scalar(select(User).where(User.id == user_id))
