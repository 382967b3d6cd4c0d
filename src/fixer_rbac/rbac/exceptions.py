"""Domain exceptions for the RBAC core.

Denials are never exceptions; the resolver returns them as results. These
cover lookups that fail, malformed catalog data, and rejected approval input.
"""


class RBACError(Exception):
    """Base exception for RBAC errors."""


class RoleNotFoundError(RBACError):
    """No active role with the requested name or id."""

    def __init__(self, role: str | int) -> None:
        self.role = role
        super().__init__(f"Role '{role}' not found")


class PermissionNotFoundError(RBACError):
    """No active permission with the requested name or id."""

    def __init__(self, permission: str | int) -> None:
        self.permission = permission
        super().__init__(f"Permission '{permission}' not found")


class InvalidPermissionNameError(RBACError):
    """Permission name does not follow the ``resource:action`` convention."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid permission name {name!r}: expected '<resource>:<action>'")


class DuplicateApprovalError(RBACError):
    """A pending approval already exists for this user and role."""

    def __init__(self, user_id: int, requested_role: str) -> None:
        self.user_id = user_id
        self.requested_role = requested_role
        super().__init__(f"User {user_id} already has a pending approval for role '{requested_role}'")


class ApprovalValidationError(RBACError):
    """Approval input rejected before touching the store (e.g. missing rejection reason)."""
