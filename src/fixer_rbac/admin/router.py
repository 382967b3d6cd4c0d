"""Admin API endpoints: approvals, roles, permissions, and user assignments."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fixer_rbac.admin.schemas import (
    ActionResponse,
    ApprovalResponse,
    ApproveRequest,
    AssignRoleRequest,
    CreateApprovalRequest,
    CreatePermissionRequest,
    CreateRoleRequest,
    PendingApprovalResponse,
    PermissionCheckBatchResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionResponse,
    RejectRequest,
    RolePermissionRequest,
    RoleSummary,
    UserPermissionRequest,
    UserPermissionsResponse,
)
from fixer_rbac.auth.dependencies import CurrentUser, CurrentUserType
from fixer_rbac.db.models import User
from fixer_rbac.dependencies import RBACComponents
from fixer_rbac.rbac.catalog import SystemPermissions
from fixer_rbac.rbac.exceptions import (
    ApprovalValidationError,
    DuplicateApprovalError,
    InvalidPermissionNameError,
    PermissionNotFoundError,
    RoleNotFoundError,
)

APPROVAL_CONFLICT_DETAIL = "Approval not found or already processed"


def create_admin_router(components: RBACComponents) -> APIRouter:
    """Build the ``/admin`` router around one set of RBAC components."""
    router = APIRouter()
    gate = components.gate
    svc = components.admin
    workflow = components.workflow
    Session = Annotated[AsyncSession, Depends(components.db.dependency)]

    can_approve = gate.require_permission(SystemPermissions.USER_APPROVE)
    can_view_catalog = gate.require_permission(SystemPermissions.USER_CREATE)
    can_configure = gate.require_permission(SystemPermissions.SYSTEM_CONFIG)
    can_update_users = gate.require_permission(SystemPermissions.USER_UPDATE)
    can_read_user = gate.require_ownership_or_permission(SystemPermissions.USER_READ, owner_field="user_id")

    # --- Approvals ---

    @router.get("/approvals/pending", response_model=list[PendingApprovalResponse])
    async def list_pending_approvals(
        session: Session,
        _caller: Annotated[int, Depends(can_approve)],
    ) -> list[PendingApprovalResponse]:
        """Pending approvals, newest request first."""
        pending = await workflow.get_pending_user_approvals(session)
        return [PendingApprovalResponse.model_validate(p, from_attributes=True) for p in pending]

    @router.post("/approvals", response_model=ApprovalResponse, status_code=201)
    async def create_approval(
        body: CreateApprovalRequest,
        session: Session,
        caller: Annotated[int, Depends(can_approve)],
    ) -> ApprovalResponse:
        await _ensure_user_exists(body.user_id, session)
        try:
            approval = await workflow.create_user_approval(
                body.user_id, body.requested_role, caller, session, notes=body.notes
            )
        except ApprovalValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except DuplicateApprovalError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return ApprovalResponse(
            id=approval.id,
            user_id=approval.user_id,
            requested_role=approval.requested_role,
            status=approval.status.value,
            requested_by=approval.requested_by,
            approval_notes=approval.approval_notes,
            requested_at=approval.requested_at,
        )

    @router.post("/approvals/{approval_id}/approve", response_model=ActionResponse)
    async def approve_user(
        approval_id: int,
        caller: Annotated[int, Depends(can_approve)],
        body: ApproveRequest | None = None,
    ) -> ActionResponse:
        notes = body.notes if body else None
        if not await workflow.approve_user(approval_id, caller, notes=notes):
            raise HTTPException(status_code=404, detail=APPROVAL_CONFLICT_DETAIL)
        return ActionResponse(success=True, message="User approved successfully")

    @router.post("/approvals/{approval_id}/reject", response_model=ActionResponse)
    async def reject_user(
        approval_id: int,
        caller: Annotated[int, Depends(can_approve)],
        body: RejectRequest | None = None,
    ) -> ActionResponse:
        try:
            rejected = await workflow.reject_user(approval_id, caller, body.reason if body else None)
        except ApprovalValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if not rejected:
            raise HTTPException(status_code=404, detail=APPROVAL_CONFLICT_DETAIL)
        return ActionResponse(success=True, message="User rejected")

    # --- Roles and permissions ---

    @router.get("/roles", response_model=list[RoleSummary])
    async def list_roles(session: Session, _caller: Annotated[int, Depends(can_view_catalog)]) -> list[RoleSummary]:
        return await svc.list_roles(session)

    @router.get("/permissions", response_model=list[PermissionResponse])
    async def list_permissions(
        session: Session, _caller: Annotated[int, Depends(can_view_catalog)]
    ) -> list[PermissionResponse]:
        return await svc.list_permissions(session)

    @router.post("/roles", response_model=RoleSummary, status_code=201)
    async def create_role(
        body: CreateRoleRequest,
        session: Session,
        _caller: Annotated[int, Depends(can_configure)],
    ) -> RoleSummary:
        name = body.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Role name is required")
        try:
            return await svc.create_role(name, body.description, session)
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @router.post("/permissions", response_model=PermissionResponse, status_code=201)
    async def create_permission(
        body: CreatePermissionRequest,
        session: Session,
        _caller: Annotated[int, Depends(can_configure)],
    ) -> PermissionResponse:
        try:
            return await svc.create_permission(body.name, body.description, session)
        except InvalidPermissionNameError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @router.put("/roles/{role_id}/permissions", response_model=RoleSummary)
    async def set_role_permission(
        role_id: int,
        body: RolePermissionRequest,
        session: Session,
        _caller: Annotated[int, Depends(can_configure)],
    ) -> RoleSummary:
        conditions = [c.model_dump(mode="json") for c in body.conditions] if body.conditions else None
        try:
            return await svc.set_role_permission(role_id, body.permission, body.granted, conditions, session)
        except (RoleNotFoundError, PermissionNotFoundError) as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    # --- User assignments ---

    @router.post("/users/{user_id}/roles", response_model=ActionResponse)
    async def assign_role(
        user_id: int,
        body: AssignRoleRequest,
        session: Session,
        caller: Annotated[int, Depends(can_update_users)],
    ) -> ActionResponse:
        await _ensure_user_exists(user_id, session)
        try:
            return await svc.assign_role(user_id, body.role_name, caller, body.expires_at, session)
        except RoleNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @router.delete("/users/{user_id}/roles/{role_name}", response_model=ActionResponse)
    async def remove_role(
        user_id: int,
        role_name: str,
        session: Session,
        _caller: Annotated[int, Depends(can_update_users)],
    ) -> ActionResponse:
        try:
            result = await svc.remove_role(user_id, role_name, session)
        except RoleNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        if not result.success:
            raise HTTPException(status_code=404, detail=result.message)
        return result

    @router.put("/users/{user_id}/permissions/{permission}", response_model=ActionResponse)
    async def set_user_permission(
        user_id: int,
        permission: str,
        body: UserPermissionRequest,
        session: Session,
        _caller: Annotated[int, Depends(can_update_users)],
    ) -> ActionResponse:
        await _ensure_user_exists(user_id, session)
        try:
            return await svc.set_user_permission(user_id, permission, body.granted, session)
        except PermissionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @router.get("/users/{user_id}/permissions", response_model=UserPermissionsResponse)
    async def get_user_permissions(
        user_id: int,
        session: Session,
        _caller: Annotated[int, Depends(can_read_user)],
    ) -> UserPermissionsResponse:
        return await svc.get_user_permissions(user_id, session)

    # --- Permission checks ---

    @router.post("/permission-checks", response_model=PermissionCheckBatchResponse)
    async def check_my_permissions(
        body: PermissionCheckRequest,
        session: Session,
        user_id: CurrentUser,
        user_type: CurrentUserType,
    ) -> PermissionCheckBatchResponse:
        """Resolve the caller's own permissions, optionally against a condition context."""
        context = {**(body.context or {}), "user_id": user_id, "user_type": user_type}
        results = await components.resolver.check_permissions(user_id, body.permissions, session, context)
        return PermissionCheckBatchResponse(
            user_id=user_id,
            results={
                name: PermissionCheckResponse(allowed=r.allowed, reason=r.reason) for name, r in results.items()
            },
        )

    return router


async def _ensure_user_exists(user_id: int, session: AsyncSession) -> None:
    result = await session.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")
