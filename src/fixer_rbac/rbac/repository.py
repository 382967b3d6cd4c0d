"""Permission Store: persistence of roles, grants, assignments, and approval requests.

Every method takes the caller's ``AsyncSession`` as its last positional
argument and only flushes; committing is the caller's business (a request
session from :meth:`DatabaseManager.dependency` or the approval workflow's own
transaction).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from fixer_rbac.db.base import Base, utc_now
from fixer_rbac.db.enums import ApprovalStatus
from fixer_rbac.db.models import Permission, Role, RolePermission, User, UserApproval, UserPermission, UserRole
from fixer_rbac.rbac.catalog import split_permission_name
from fixer_rbac.rbac.exceptions import DuplicateApprovalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RoleGrant:
    """A role's granted permission as seen by the resolver."""

    permission: str
    conditions: list[dict[str, Any]] | None


@dataclass(frozen=True, slots=True)
class PendingApproval:
    """Pending approval row joined with display fields of the target user and the requester."""

    id: int
    user_id: int
    requested_role: str
    requested_by: int | None
    approval_notes: str | None
    requested_at: datetime
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    requested_by_email: str | None
    requested_by_first_name: str | None


def _effective_assignment() -> ColumnElement[bool]:
    """SQL predicate for a user-role assignment that is currently in force."""
    return (
        UserRole.is_active.is_(True)
        & or_(UserRole.expires_at.is_(None), UserRole.expires_at > utc_now())
        & Role.is_active.is_(True)
    )


M = TypeVar("M", bound=Base)


async def _upsert(
    model: type[M],
    key: tuple[str, ...],
    values: dict[str, Any],
    update_columns: tuple[str, ...],
    session: AsyncSession,
) -> M:
    """Insert *values* or, when the *key* columns collide, overwrite *update_columns* in one statement.

    Concurrent writers of the same key both succeed; the later one wins.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model).values(**values)
    else:
        raise NotImplementedError(f"Upsert is not supported on {dialect}")

    set_ = {name: stmt.excluded[name] for name in update_columns}
    set_["updated_at"] = utc_now()
    stmt = stmt.on_conflict_do_update(index_elements=list(key), set_=set_)
    result = await session.scalars(stmt.returning(model), execution_options={"populate_existing": True})
    return result.one()


class RBACRepository:
    """Data access for the RBAC tables.

    Usage::

        repo = RBACRepository()
        roles = await repo.get_user_roles(user_id, session)
        grants = await repo.get_role_permissions(roles[0].role_id, session)
    """

    # --- Roles and permissions ---

    async def get_all_roles(self, session: AsyncSession) -> list[Role]:
        """Active roles with their grants (and the granted permissions) eagerly loaded."""
        stmt = (
            select(Role)
            .where(Role.is_active.is_(True))
            .options(selectinload(Role.role_permissions).selectinload(RolePermission.permission))
            .order_by(Role.name)
        )
        result = await session.execute(stmt)
        return list(result.scalars().unique().all())

    async def get_role(self, role_id: int, session: AsyncSession) -> Role | None:
        result = await session.execute(select(Role).where(Role.id == role_id))
        return result.scalar_one_or_none()

    async def get_role_by_name(self, name: str, session: AsyncSession, *, active_only: bool = True) -> Role | None:
        stmt = select(Role).where(Role.name == name)
        if active_only:
            stmt = stmt.where(Role.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all_permissions(self, session: AsyncSession) -> list[Permission]:
        stmt = select(Permission).where(Permission.is_active.is_(True)).order_by(Permission.resource, Permission.action)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_permission_by_name(
        self, name: str, session: AsyncSession, *, active_only: bool = True
    ) -> Permission | None:
        stmt = select(Permission).where(Permission.name == name)
        if active_only:
            stmt = stmt.where(Permission.is_active.is_(True))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_role(
        self,
        name: str,
        session: AsyncSession,
        *,
        description: str | None = None,
        is_system: bool = False,
    ) -> Role:
        role = Role(name=name, description=description, is_system=is_system)
        session.add(role)
        await session.flush()
        logger.info("Created role '%s'", name)
        return role

    async def create_permission(
        self, name: str, session: AsyncSession, *, description: str | None = None
    ) -> Permission:
        """Create a permission; raises ``InvalidPermissionNameError`` for names not shaped ``resource:action``."""
        resource, action = split_permission_name(name)
        permission = Permission(name=name, resource=resource, action=action, description=description)
        session.add(permission)
        await session.flush()
        logger.info("Created permission '%s'", name)
        return permission

    async def get_role_permission_ids(self, role_id: int, session: AsyncSession) -> set[int]:
        """Ids of every permission linked to the role, granted or not."""
        result = await session.execute(select(RolePermission.permission_id).where(RolePermission.role_id == role_id))
        return set(result.scalars().all())

    async def assign_permission_to_role(
        self,
        role_id: int,
        permission_id: int,
        session: AsyncSession,
        *,
        granted: bool = True,
        conditions: list[dict[str, Any]] | None = None,
    ) -> RolePermission:
        """Grant (or switch off) a permission on a role, replacing any previous grant in place."""
        return await _upsert(
            RolePermission,
            ("role_id", "permission_id"),
            {"role_id": role_id, "permission_id": permission_id, "granted": granted, "conditions": conditions or None},
            ("granted", "conditions"),
            session,
        )

    # --- Grants as seen by a user ---

    async def get_user_roles(self, user_id: int, session: AsyncSession) -> list[UserRole]:
        """Effective role assignments for *user_id*, most recently assigned first."""
        stmt = (
            select(UserRole)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id == user_id, _effective_assignment())
            .options(selectinload(UserRole.role))
            .order_by(UserRole.assigned_at.desc(), UserRole.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_user_direct_permissions(self, user_id: int, session: AsyncSession) -> dict[str, bool]:
        """Active direct rows on active permissions, as ``{permission name: granted}``.

        Rows with ``granted=False`` are included so callers can treat them as
        revocations.
        """
        stmt = (
            select(Permission.name, UserPermission.granted)
            .join(Permission, Permission.id == UserPermission.permission_id)
            .where(
                UserPermission.user_id == user_id,
                UserPermission.is_active.is_(True),
                Permission.is_active.is_(True),
            )
        )
        result = await session.execute(stmt)
        return {row.name: row.granted for row in result.all()}

    async def get_role_permissions(self, role_id: int, session: AsyncSession) -> list[RoleGrant]:
        """Granted permissions of a role, with their conditions."""
        stmt = (
            select(Permission.name, RolePermission.conditions)
            .join(Permission, Permission.id == RolePermission.permission_id)
            .where(
                RolePermission.role_id == role_id,
                RolePermission.granted.is_(True),
                Permission.is_active.is_(True),
            )
            .order_by(Permission.name)
        )
        result = await session.execute(stmt)
        return [RoleGrant(permission=row.name, conditions=row.conditions) for row in result.all()]

    async def get_user_permissions(self, user_id: int, session: AsyncSession) -> set[str]:
        """Names reachable through direct grants or effective roles, ignoring conditions.

        Direct revocations remove a name even when a role grants it.
        """
        direct = await self.get_user_direct_permissions(user_id, session)

        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(
                UserRole.user_id == user_id,
                _effective_assignment(),
                RolePermission.granted.is_(True),
                Permission.is_active.is_(True),
            )
        )
        result = await session.execute(stmt)
        names = set(result.scalars().all())
        names.update(name for name, granted in direct.items() if granted)
        return {name for name in names if direct.get(name, True)}

    # --- Assignments ---

    async def assign_role_to_user(
        self,
        user_id: int,
        role_id: int,
        session: AsyncSession,
        *,
        assigned_by: int | None = None,
        expires_at: datetime | None = None,
    ) -> UserRole:
        """Assign a role, or reactivate and refresh an existing assignment."""
        row = await _upsert(
            UserRole,
            ("user_id", "role_id"),
            {
                "user_id": user_id,
                "role_id": role_id,
                "is_active": True,
                "assigned_by": assigned_by,
                "assigned_at": utc_now(),
                "expires_at": expires_at,
            },
            ("is_active", "assigned_by", "assigned_at", "expires_at"),
            session,
        )
        logger.info("Assigned role %d to user %d", role_id, user_id)
        return row

    async def remove_role_from_user(self, user_id: int, role_id: int, session: AsyncSession) -> bool:
        """Deactivate an assignment. Returns ``False`` if the user never had the role."""
        stmt = (
            update(UserRole)
            .where(UserRole.user_id == user_id, UserRole.role_id == role_id)
            .values(is_active=False, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount == 0:
            return False
        logger.info("Deactivated role %d for user %d", role_id, user_id)
        return True

    async def set_user_permission(
        self,
        user_id: int,
        permission_id: int,
        session: AsyncSession,
        *,
        granted: bool = True,
    ) -> UserPermission:
        """Create or overwrite the direct grant (or revocation) of a permission."""
        row = await _upsert(
            UserPermission,
            ("user_id", "permission_id"),
            {"user_id": user_id, "permission_id": permission_id, "granted": granted, "is_active": True},
            ("granted", "is_active"),
            session,
        )
        logger.info("Set direct permission %d for user %d (granted=%s)", permission_id, user_id, granted)
        return row

    # --- Approvals ---

    async def create_user_approval(
        self,
        user_id: int,
        requested_role: str,
        requested_by: int | None,
        session: AsyncSession,
        notes: str | None = None,
    ) -> UserApproval:
        """Insert a pending approval.

        Raises:
            DuplicateApprovalError: A pending approval for the same user and
                role already exists.
        """
        existing = await session.execute(
            select(UserApproval.id).where(
                UserApproval.user_id == user_id,
                UserApproval.requested_role == requested_role,
                UserApproval.status == ApprovalStatus.PENDING,
            )
        )
        if existing.first() is not None:
            raise DuplicateApprovalError(user_id, requested_role)

        approval = UserApproval(
            user_id=user_id,
            requested_role=requested_role,
            requested_by=requested_by,
            approval_notes=notes,
            status=ApprovalStatus.PENDING,
        )
        try:
            async with session.begin_nested():
                session.add(approval)
                await session.flush()
        except IntegrityError as exc:
            # Lost a race against a concurrent request for the same pair.
            exc_text = str(exc.orig).lower() if exc.orig else str(exc).lower()
            if "uq_user_approvals_pending" in exc_text or "unique" in exc_text or "duplicate" in exc_text:
                raise DuplicateApprovalError(user_id, requested_role) from exc
            raise
        return approval

    async def get_pending_user_approvals(self, session: AsyncSession) -> list[PendingApproval]:
        target = aliased(User)
        requester = aliased(User)
        stmt = (
            select(
                UserApproval,
                target.email,
                target.first_name,
                target.last_name,
                target.phone,
                requester.email.label("requested_by_email"),
                requester.first_name.label("requested_by_first_name"),
            )
            .join(target, target.id == UserApproval.user_id)
            .outerjoin(requester, requester.id == UserApproval.requested_by)
            .where(UserApproval.status == ApprovalStatus.PENDING)
            .order_by(UserApproval.requested_at.desc(), UserApproval.id.desc())
        )
        result = await session.execute(stmt)
        return [
            PendingApproval(
                id=row.UserApproval.id,
                user_id=row.UserApproval.user_id,
                requested_role=row.UserApproval.requested_role,
                requested_by=row.UserApproval.requested_by,
                approval_notes=row.UserApproval.approval_notes,
                requested_at=row.UserApproval.requested_at,
                email=row.email,
                first_name=row.first_name,
                last_name=row.last_name,
                phone=row.phone,
                requested_by_email=row.requested_by_email,
                requested_by_first_name=row.requested_by_first_name,
            )
            for row in result.all()
        ]

    async def mark_approval_approved(
        self,
        approval_id: int,
        approved_by: int,
        session: AsyncSession,
        notes: str | None = None,
    ) -> tuple[int, str] | None:
        """Move a pending approval to ``approved``.

        The ``status = 'pending'`` guard makes this the single point of
        conflict between concurrent resolvers. Returns ``(user_id,
        requested_role)`` of the claimed row, or ``None`` when no pending row
        with that id exists.
        """
        now = utc_now()
        values: dict[str, Any] = {
            "status": ApprovalStatus.APPROVED,
            "approved_by": approved_by,
            "approved_at": now,
            "updated_at": now,
        }
        if notes is not None:
            values["approval_notes"] = notes
        return await self._resolve_pending(approval_id, values, session)

    async def mark_approval_rejected(
        self,
        approval_id: int,
        rejected_by: int,
        reason: str,
        session: AsyncSession,
    ) -> tuple[int, str] | None:
        """Move a pending approval to ``rejected``; same contract as :meth:`mark_approval_approved`."""
        now = utc_now()
        values: dict[str, Any] = {
            "status": ApprovalStatus.REJECTED,
            "rejected_by": rejected_by,
            "rejection_reason": reason,
            "rejected_at": now,
            "updated_at": now,
        }
        return await self._resolve_pending(approval_id, values, session)

    async def set_user_approval_status(
        self,
        user_id: int,
        status: ApprovalStatus,
        session: AsyncSession,
        *,
        approved_by: int | None = None,
    ) -> None:
        now = utc_now()
        values: dict[str, Any] = {"approval_status": status, "updated_at": now}
        if status == ApprovalStatus.APPROVED:
            values["approved_by"] = approved_by
            values["approved_at"] = now
        await session.execute(
            update(User).where(User.id == user_id).values(**values).execution_options(synchronize_session=False)
        )

    @staticmethod
    async def _resolve_pending(
        approval_id: int, values: dict[str, Any], session: AsyncSession
    ) -> tuple[int, str] | None:
        stmt = (
            update(UserApproval)
            .where(UserApproval.id == approval_id, UserApproval.status == ApprovalStatus.PENDING)
            .values(**values)
            .returning(UserApproval.user_id, UserApproval.requested_role)
            .execution_options(synchronize_session=False)
        )
        row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return row.user_id, row.requested_role
