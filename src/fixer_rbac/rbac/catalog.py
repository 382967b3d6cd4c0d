"""System roles, the permission catalog, and the idempotent bootstrap that seeds them.

Permission names are plain ``resource:action`` strings compared by equality at
check time. Their shape is validated here, when permissions enter the store,
and nowhere on the hot path.
"""

import enum
import logging
import re
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from fixer_rbac.rbac.exceptions import InvalidPermissionNameError

if TYPE_CHECKING:
    from fixer_rbac.rbac.repository import RBACRepository

logger = logging.getLogger(__name__)

PERMISSION_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*:[a-z][a-z0-9_]*$")


class SystemRoles(enum.StrEnum):
    """Roles created by the bootstrap."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MODERATOR = "moderator"
    PROVIDER = "provider"
    CUSTOMER = "customer"
    GUEST = "guest"


class SystemPermissions(enum.StrEnum):
    """The marketplace permission catalog."""

    # User management
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"
    USER_LIST = "user:list"
    USER_APPROVE = "user:approve"

    # Service requests
    SERVICE_REQUEST_CREATE = "service_request:create"
    SERVICE_REQUEST_READ = "service_request:read"
    SERVICE_REQUEST_UPDATE = "service_request:update"
    SERVICE_REQUEST_DELETE = "service_request:delete"
    SERVICE_REQUEST_LIST = "service_request:list"
    SERVICE_REQUEST_UPDATE_STATUS = "service_request:update_status"

    # Providers
    PROVIDER_CREATE = "provider:create"
    PROVIDER_READ = "provider:read"
    PROVIDER_UPDATE = "provider:update"
    PROVIDER_DELETE = "provider:delete"
    PROVIDER_LIST = "provider:list"
    PROVIDER_VERIFY = "provider:verify"

    # Quotes
    QUOTE_CREATE = "quote:create"
    QUOTE_READ = "quote:read"
    QUOTE_UPDATE = "quote:update"
    QUOTE_DELETE = "quote:delete"
    QUOTE_LIST = "quote:list"
    QUOTE_ACCEPT = "quote:accept"
    QUOTE_REJECT = "quote:reject"

    # Bookings
    BOOKING_CREATE = "booking:create"
    BOOKING_READ = "booking:read"
    BOOKING_UPDATE = "booking:update"
    BOOKING_DELETE = "booking:delete"
    BOOKING_LIST = "booking:list"
    BOOKING_UPDATE_STATUS = "booking:update_status"

    # Products
    PRODUCT_CREATE = "product:create"
    PRODUCT_READ = "product:read"
    PRODUCT_UPDATE = "product:update"
    PRODUCT_DELETE = "product:delete"
    PRODUCT_LIST = "product:list"

    # Categories
    CATEGORY_CREATE = "category:create"
    CATEGORY_READ = "category:read"
    CATEGORY_UPDATE = "category:update"
    CATEGORY_DELETE = "category:delete"
    CATEGORY_LIST = "category:list"

    # Payments
    PAYMENT_PROCESS = "payment:process"
    PAYMENT_READ = "payment:read"
    PAYMENT_REFUND = "payment:refund"
    PAYMENT_LIST = "payment:list"

    # Communication
    COMMUNICATION_INITIATE_CALL = "communication:initiate_call"
    COMMUNICATION_SEND_MESSAGE = "communication:send_message"
    COMMUNICATION_READ_MESSAGE = "communication:read_message"

    # Analytics and reports
    ANALYTICS_VIEW = "analytics:view"
    REPORTS_GENERATE = "reports:generate"

    # System administration
    SYSTEM_CONFIG = "system:config"
    SYSTEM_LOGS = "system:logs"
    SYSTEM_BACKUP = "system:backup"


_P = SystemPermissions

ROLE_DESCRIPTIONS: dict[SystemRoles, str] = {
    SystemRoles.SUPER_ADMIN: "Full system access",
    SystemRoles.ADMIN: "Administrative access",
    SystemRoles.MODERATOR: "Moderation access",
    SystemRoles.PROVIDER: "Service provider access",
    SystemRoles.CUSTOMER: "Customer access",
    SystemRoles.GUEST: "Guest access",
}

# Default grants per system role. Admins get everything except system
# administration and hard deletes of accounts; super admins get everything.
DEFAULT_ROLE_PERMISSIONS: dict[SystemRoles, tuple[SystemPermissions, ...]] = {
    SystemRoles.SUPER_ADMIN: tuple(SystemPermissions),
    SystemRoles.ADMIN: tuple(
        p for p in SystemPermissions if p.value.split(":")[0] != "system" and p is not _P.USER_DELETE
    ),
    SystemRoles.MODERATOR: (
        _P.USER_READ,
        _P.USER_LIST,
        _P.USER_APPROVE,
        _P.SERVICE_REQUEST_READ,
        _P.SERVICE_REQUEST_LIST,
        _P.PROVIDER_READ,
        _P.PROVIDER_LIST,
        _P.PROVIDER_VERIFY,
        _P.QUOTE_READ,
        _P.QUOTE_LIST,
        _P.BOOKING_READ,
        _P.BOOKING_LIST,
        _P.PRODUCT_READ,
        _P.PRODUCT_LIST,
        _P.CATEGORY_READ,
        _P.CATEGORY_LIST,
        _P.COMMUNICATION_READ_MESSAGE,
    ),
    SystemRoles.PROVIDER: (
        _P.SERVICE_REQUEST_READ,
        _P.SERVICE_REQUEST_LIST,
        _P.SERVICE_REQUEST_UPDATE_STATUS,
        _P.PROVIDER_READ,
        _P.PROVIDER_UPDATE,
        _P.QUOTE_CREATE,
        _P.QUOTE_READ,
        _P.QUOTE_UPDATE,
        _P.QUOTE_LIST,
        _P.BOOKING_READ,
        _P.BOOKING_LIST,
        _P.BOOKING_UPDATE_STATUS,
        _P.PRODUCT_CREATE,
        _P.PRODUCT_READ,
        _P.PRODUCT_UPDATE,
        _P.PRODUCT_DELETE,
        _P.PRODUCT_LIST,
        _P.CATEGORY_READ,
        _P.CATEGORY_LIST,
        _P.PAYMENT_READ,
        _P.COMMUNICATION_INITIATE_CALL,
        _P.COMMUNICATION_SEND_MESSAGE,
        _P.COMMUNICATION_READ_MESSAGE,
    ),
    SystemRoles.CUSTOMER: (
        _P.SERVICE_REQUEST_CREATE,
        _P.SERVICE_REQUEST_READ,
        _P.SERVICE_REQUEST_UPDATE,
        _P.SERVICE_REQUEST_LIST,
        _P.PROVIDER_READ,
        _P.PROVIDER_LIST,
        _P.QUOTE_READ,
        _P.QUOTE_LIST,
        _P.QUOTE_ACCEPT,
        _P.QUOTE_REJECT,
        _P.BOOKING_CREATE,
        _P.BOOKING_READ,
        _P.BOOKING_LIST,
        _P.PRODUCT_READ,
        _P.PRODUCT_LIST,
        _P.CATEGORY_READ,
        _P.CATEGORY_LIST,
        _P.PAYMENT_PROCESS,
        _P.PAYMENT_READ,
        _P.COMMUNICATION_INITIATE_CALL,
        _P.COMMUNICATION_SEND_MESSAGE,
        _P.COMMUNICATION_READ_MESSAGE,
    ),
    SystemRoles.GUEST: (
        _P.PROVIDER_READ,
        _P.PROVIDER_LIST,
        _P.PRODUCT_READ,
        _P.PRODUCT_LIST,
        _P.CATEGORY_READ,
        _P.CATEGORY_LIST,
    ),
}


def split_permission_name(name: str) -> tuple[str, str]:
    """Return ``(resource, action)`` for a ``resource:action`` name.

    Raises:
        InvalidPermissionNameError: If *name* does not have that shape.
    """
    if not PERMISSION_NAME_PATTERN.fullmatch(name):
        raise InvalidPermissionNameError(name)
    resource, action = name.split(":", 1)
    return resource, action


def describe_permission(name: str) -> str:
    """Human description derived from the name, e.g. ``"Update status of booking"``."""
    resource, action = split_permission_name(name)
    return f"{action.replace('_', ' ').capitalize()} {resource.replace('_', ' ')}"


async def bootstrap_catalog(repository: "RBACRepository", session: AsyncSession) -> dict[str, int]:
    """Create missing system roles, catalog permissions, and default grants.

    Safe to run on every startup: existing rows are left untouched, so grants
    an operator revoked or conditioned stay that way. Returns counts of what
    was created.
    """
    created = {"roles": 0, "permissions": 0, "grants": 0}

    permission_ids: dict[str, int] = {}
    for perm in SystemPermissions:
        existing = await repository.get_permission_by_name(perm.value, session, active_only=False)
        if existing is None:
            existing = await repository.create_permission(perm.value, session, description=describe_permission(perm))
            created["permissions"] += 1
        permission_ids[perm.value] = existing.id

    for role_name, description in ROLE_DESCRIPTIONS.items():
        role = await repository.get_role_by_name(role_name.value, session, active_only=False)
        if role is None:
            role = await repository.create_role(role_name.value, session, description=description, is_system=True)
            created["roles"] += 1

        already_linked = await repository.get_role_permission_ids(role.id, session)
        for perm in DEFAULT_ROLE_PERMISSIONS[role_name]:
            permission_id = permission_ids[perm.value]
            if permission_id in already_linked:
                continue
            await repository.assign_permission_to_role(role.id, permission_id, session)
            created["grants"] += 1

    logger.info(
        "RBAC catalog bootstrap: %d roles, %d permissions, %d grants created",
        created["roles"],
        created["permissions"],
        created["grants"],
    )
    return created
