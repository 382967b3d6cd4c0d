"""RBAC core: permission store, resolver, approval workflow, and the system catalog."""

from fixer_rbac.rbac.approvals import ApprovalWorkflow
from fixer_rbac.rbac.catalog import SystemPermissions, SystemRoles, bootstrap_catalog
from fixer_rbac.rbac.conditions import MISSING, Condition, conditions_hold, evaluate_condition
from fixer_rbac.rbac.exceptions import (
    ApprovalValidationError,
    DuplicateApprovalError,
    InvalidPermissionNameError,
    PermissionNotFoundError,
    RBACError,
    RoleNotFoundError,
)
from fixer_rbac.rbac.repository import PendingApproval, RBACRepository, RoleGrant
from fixer_rbac.rbac.resolver import PermissionCheckResult, PermissionResolver

__all__ = [
    "MISSING",
    "ApprovalValidationError",
    "ApprovalWorkflow",
    "Condition",
    "DuplicateApprovalError",
    "InvalidPermissionNameError",
    "PendingApproval",
    "PermissionCheckResult",
    "PermissionNotFoundError",
    "PermissionResolver",
    "RBACError",
    "RBACRepository",
    "RoleGrant",
    "RoleNotFoundError",
    "SystemPermissions",
    "SystemRoles",
    "bootstrap_catalog",
    "conditions_hold",
    "evaluate_condition",
]
