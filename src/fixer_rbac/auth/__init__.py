"""Authentication and the authorization gate."""

from fixer_rbac.auth.dependencies import CurrentUser, get_current_user
from fixer_rbac.auth.jwt import JWTError, JWTExpiredError, JWTInvalidError, JWTService, TokenIdentity
from fixer_rbac.auth.middleware import JWTAuthMiddleware
from fixer_rbac.auth.permissions import AuthorizationGate

__all__ = [
    "AuthorizationGate",
    "CurrentUser",
    "JWTAuthMiddleware",
    "JWTError",
    "JWTExpiredError",
    "JWTInvalidError",
    "JWTService",
    "TokenIdentity",
    "get_current_user",
]
