"""Permission Resolver: decides whether a user holds a permission, optionally in context."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fixer_rbac.rbac.conditions import conditions_hold
from fixer_rbac.rbac.repository import RBACRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PermissionCheckResult:
    """Outcome of a single permission check.

    ``error`` is set when the answer is a denial only because the store could
    not be read; callers that need to tell "denied" from "broken" look at it.
    """

    allowed: bool
    reason: str | None = None
    error: bool = False


class PermissionResolver:
    """Resolves permissions through direct grants, then effective roles and their conditions.

    Resolution order for ``check_permission(user, name, context)``:

    1. An active direct grant for *name* allows outright; an active direct
       revocation denies outright. Neither looks at roles.
    2. Each effective role (active, not expired, role itself active) that
       grants *name* is tried in turn. A grant without conditions allows; a
       conditional grant allows only when every condition holds against
       *context*.
    3. Otherwise the check is denied.

    The resolver never raises for a denial, and a failure to read the store is
    reported as a denial with ``error=True``.
    """

    def __init__(self, repository: RBACRepository) -> None:
        self._repository = repository

    async def check_permission(
        self,
        user_id: int,
        permission: str,
        session: AsyncSession,
        context: Mapping[str, Any] | None = None,
    ) -> PermissionCheckResult:
        try:
            direct = await self._repository.get_user_direct_permissions(user_id, session)
            if permission in direct:
                if direct[permission]:
                    return PermissionCheckResult(allowed=True)
                logger.warning("Permission %s revoked directly for user %s", permission, user_id)
                return self._denied(permission)

            for user_role in await self._repository.get_user_roles(user_id, session):
                grants = await self._repository.get_role_permissions(user_role.role_id, session)
                grant = next((g for g in grants if g.permission == permission), None)
                if grant is None:
                    continue
                if conditions_hold(grant.conditions, context):
                    return PermissionCheckResult(allowed=True)
        except Exception as exc:
            logger.exception("Permission check failed for user %s, permission %s", user_id, permission)
            return PermissionCheckResult(allowed=False, reason=f"Error checking permission: {exc}", error=True)

        logger.warning("User %s denied permission %s", user_id, permission)
        return self._denied(permission)

    async def check_permissions(
        self,
        user_id: int,
        permissions: Sequence[str],
        session: AsyncSession,
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, PermissionCheckResult]:
        """Check each permission independently."""
        return {name: await self.check_permission(user_id, name, session, context) for name in permissions}

    async def has_any_permission(
        self,
        user_id: int,
        permissions: Sequence[str],
        session: AsyncSession,
        context: Mapping[str, Any] | None = None,
    ) -> bool:
        for name in permissions:
            if (await self.check_permission(user_id, name, session, context)).allowed:
                return True
        return False

    async def has_all_permissions(
        self,
        user_id: int,
        permissions: Sequence[str],
        session: AsyncSession,
        context: Mapping[str, Any] | None = None,
    ) -> bool:
        for name in permissions:
            if not (await self.check_permission(user_id, name, session, context)).allowed:
                return False
        return True

    @staticmethod
    def _denied(permission: str) -> PermissionCheckResult:
        return PermissionCheckResult(allowed=False, reason=f"User does not have permission: {permission}")
