"""Admin business logic: role, permission, and user-assignment management."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fixer_rbac.admin.schemas import (
    ActionResponse,
    PermissionResponse,
    RoleGrantResponse,
    RoleSummary,
    UserPermissionsResponse,
    UserRoleResponse,
)
from fixer_rbac.db.models import Permission, Role, RolePermission
from fixer_rbac.rbac.exceptions import PermissionNotFoundError, RoleNotFoundError
from fixer_rbac.rbac.repository import RBACRepository

logger = logging.getLogger(__name__)


class AdminService:
    """Role and permission administration on top of :class:`RBACRepository`.

    Lookups that miss raise :class:`RoleNotFoundError` /
    :class:`PermissionNotFoundError`; name clashes raise ``ValueError``.
    """

    def __init__(self, repository: RBACRepository) -> None:
        self._repo = repository

    # --- Roles and permissions ---

    async def list_roles(self, session: AsyncSession) -> list[RoleSummary]:
        """Active roles with their granted permissions."""
        roles = await self._repo.get_all_roles(session)
        return [self._role_to_summary(r) for r in roles]

    async def list_permissions(self, session: AsyncSession) -> list[PermissionResponse]:
        return [self._permission_to_response(p) for p in await self._repo.get_all_permissions(session)]

    async def create_role(self, name: str, description: str | None, session: AsyncSession) -> RoleSummary:
        if await self._repo.get_role_by_name(name, session, active_only=False) is not None:
            raise ValueError(f"Role '{name}' already exists")
        role = await self._repo.create_role(name, session, description=description)
        return await self._get_role_summary(role.id, session)

    async def create_permission(
        self, name: str, description: str | None, session: AsyncSession
    ) -> PermissionResponse:
        """Create a permission. Raises ``InvalidPermissionNameError`` for badly shaped names."""
        if await self._repo.get_permission_by_name(name, session, active_only=False) is not None:
            raise ValueError(f"Permission '{name}' already exists")
        permission = await self._repo.create_permission(name, session, description=description)
        return self._permission_to_response(permission)

    async def set_role_permission(
        self,
        role_id: int,
        permission_name: str,
        granted: bool,
        conditions: list[dict[str, Any]] | None,
        session: AsyncSession,
    ) -> RoleSummary:
        role = await self._repo.get_role(role_id, session)
        if role is None or not role.is_active:
            raise RoleNotFoundError(role_id)
        permission = await self._get_permission_or_raise(permission_name, session)

        await self._repo.assign_permission_to_role(
            role.id, permission.id, session, granted=granted, conditions=conditions
        )
        logger.info(
            "Role '%s' grant of '%s' set (granted=%s, %d conditions)",
            role.name,
            permission_name,
            granted,
            len(conditions or ()),
        )
        return await self._get_role_summary(role.id, session)

    # --- User assignments ---

    async def assign_role(
        self,
        user_id: int,
        role_name: str,
        assigned_by: int,
        expires_at: datetime | None,
        session: AsyncSession,
    ) -> ActionResponse:
        role = await self._get_role_or_raise(role_name, session)
        await self._repo.assign_role_to_user(user_id, role.id, session, assigned_by=assigned_by, expires_at=expires_at)
        return ActionResponse(success=True, message=f"Role '{role_name}' assigned to user {user_id}")

    async def remove_role(self, user_id: int, role_name: str, session: AsyncSession) -> ActionResponse:
        role = await self._get_role_or_raise(role_name, session)
        if not await self._repo.remove_role_from_user(user_id, role.id, session):
            return ActionResponse(success=False, message=f"User {user_id} does not have role '{role_name}'")
        return ActionResponse(success=True, message=f"Role '{role_name}' removed from user {user_id}")

    async def set_user_permission(
        self, user_id: int, permission_name: str, granted: bool, session: AsyncSession
    ) -> ActionResponse:
        permission = await self._get_permission_or_raise(permission_name, session)
        await self._repo.set_user_permission(user_id, permission.id, session, granted=granted)
        verb = "granted to" if granted else "revoked for"
        return ActionResponse(success=True, message=f"Permission '{permission_name}' {verb} user {user_id}")

    async def get_user_permissions(self, user_id: int, session: AsyncSession) -> UserPermissionsResponse:
        names = await self._repo.get_user_permissions(user_id, session)
        user_roles = await self._repo.get_user_roles(user_id, session)
        return UserPermissionsResponse(
            user_id=user_id,
            permissions=sorted(names),
            roles=[
                UserRoleResponse(
                    role_id=ur.role_id,
                    role_name=ur.role.name,
                    assigned_by=ur.assigned_by,
                    assigned_at=ur.assigned_at,
                    expires_at=ur.expires_at,
                )
                for ur in user_roles
            ],
        )

    # --- Helpers ---

    @staticmethod
    def _permission_to_response(permission: Permission) -> PermissionResponse:
        return PermissionResponse(
            id=permission.id,
            name=permission.name,
            resource=permission.resource,
            action=permission.action,
            description=permission.description,
        )

    @staticmethod
    def _role_to_summary(role: Role) -> RoleSummary:
        return RoleSummary(
            id=role.id,
            name=role.name,
            description=role.description,
            is_system=role.is_system,
            is_active=role.is_active,
            permissions=[
                RoleGrantResponse(permission=rp.permission.name, granted=rp.granted, conditions=rp.conditions)
                for rp in sorted(role.role_permissions, key=lambda rp: rp.permission.name)
                if rp.granted and rp.permission.is_active
            ],
            created_at=role.created_at,
            updated_at=role.updated_at,
        )

    async def _get_role_summary(self, role_id: int, session: AsyncSession) -> RoleSummary:
        stmt = (
            select(Role)
            .where(Role.id == role_id)
            .options(selectinload(Role.role_permissions).selectinload(RolePermission.permission))
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return self._role_to_summary(result.scalar_one())

    async def _get_role_or_raise(self, name: str, session: AsyncSession) -> Role:
        role = await self._repo.get_role_by_name(name, session)
        if role is None:
            raise RoleNotFoundError(name)
        return role

    async def _get_permission_or_raise(self, name: str, session: AsyncSession) -> Permission:
        permission = await self._repo.get_permission_by_name(name, session)
        if permission is None:
            raise PermissionNotFoundError(name)
        return permission
