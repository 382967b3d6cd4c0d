"""Re-export all model classes."""

from fixer_rbac.db.models.rbac import Permission, Role, RolePermission, UserApproval, UserPermission, UserRole
from fixer_rbac.db.models.user import User

__all__ = [
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserApproval",
    "UserPermission",
    "UserRole",
]
