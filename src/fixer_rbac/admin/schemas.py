"""Pydantic request/response models for the admin RBAC endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from fixer_rbac.db.enums import ConditionOperator

# --- Action Responses ---


class ActionResponse(BaseModel):
    """Generic response for mutation actions."""

    success: bool
    message: str


# --- Roles and permissions ---


class ConditionSchema(BaseModel):
    """One ``{field, operator, value}`` predicate on a role grant.

    Equality is strict. ``user_id`` and numeric ``resource_owner_id`` values in
    the check context are integers, so compare them with integer ``value``s.
    """

    field: str = Field(..., min_length=1, description="Dot path into the check context, e.g. resource_data.status")
    operator: ConditionOperator
    value: Any = None


class PermissionResponse(BaseModel):
    """A single permission."""

    id: int
    name: str
    resource: str
    action: str
    description: str | None


class RoleGrantResponse(BaseModel):
    """A permission granted to a role, with its conditions."""

    permission: str
    granted: bool
    conditions: list[dict[str, Any]] | None = None


class RoleSummary(BaseModel):
    """Role with its permission grants."""

    id: int
    name: str
    description: str | None
    is_system: bool
    is_active: bool
    permissions: list[RoleGrantResponse]
    created_at: datetime
    updated_at: datetime


class CreateRoleRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None


class CreatePermissionRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=100, description="'<resource>:<action>'")
    description: str | None = None


class RolePermissionRequest(BaseModel):
    """Grant (or switch off) one permission on a role."""

    permission: str = Field(..., min_length=1)
    granted: bool = True
    conditions: list[ConditionSchema] | None = None


# --- User assignments ---


class AssignRoleRequest(BaseModel):
    role_name: str = Field(..., min_length=1, max_length=100)
    expires_at: datetime | None = None


class UserPermissionRequest(BaseModel):
    """Direct grant (``granted=true``) or revocation (``granted=false``)."""

    granted: bool = True


class UserRoleResponse(BaseModel):
    role_id: int
    role_name: str
    assigned_by: int | None
    assigned_at: datetime
    expires_at: datetime | None


class UserPermissionsResponse(BaseModel):
    """Effective permission names of a user (conditions not applied) and their roles."""

    user_id: int
    permissions: list[str]
    roles: list[UserRoleResponse]


# --- Permission checks ---


class PermissionCheckRequest(BaseModel):
    permissions: list[str] = Field(..., min_length=1)
    context: dict[str, Any] | None = None


class PermissionCheckResponse(BaseModel):
    allowed: bool
    reason: str | None = None


class PermissionCheckBatchResponse(BaseModel):
    user_id: int
    results: dict[str, PermissionCheckResponse]


# --- Approvals ---


class CreateApprovalRequest(BaseModel):
    user_id: int
    requested_role: str = Field(..., max_length=100)
    notes: str | None = None


class ApproveRequest(BaseModel):
    notes: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class ApprovalResponse(BaseModel):
    """A user approval request as stored."""

    id: int
    user_id: int
    requested_role: str
    status: str
    requested_by: int | None
    approval_notes: str | None
    requested_at: datetime


class PendingApprovalResponse(BaseModel):
    """Pending approval with display fields of the user and the requester."""

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
