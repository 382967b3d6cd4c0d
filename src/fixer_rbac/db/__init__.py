"""Database package -- convenience re-exports.

Importing this module registers all models with Base.metadata.
"""

from fixer_rbac.db.base import Base
from fixer_rbac.db.enums import ApprovalStatus, ConditionOperator
from fixer_rbac.db.models import (
    Permission,
    Role,
    RolePermission,
    User,
    UserApproval,
    UserPermission,
    UserRole,
)
from fixer_rbac.db.session import DatabaseManager

__all__ = [
    # Base
    "Base",
    # Enums
    "ApprovalStatus",
    "ConditionOperator",
    # Models
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserApproval",
    "UserPermission",
    "UserRole",
    # Session
    "DatabaseManager",
]
