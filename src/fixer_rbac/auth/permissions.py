"""Authorization Gate: FastAPI dependencies that guard endpoints with permission checks.

Each ``require_*`` method returns an async dependency. The dependency reads
the caller from ``request.state`` (set by :class:`JWTAuthMiddleware`), builds
the condition context from the request, asks the resolver, and either raises
an ``HTTPException`` or stores the context on ``request.state.rbac_context``
and returns the caller's user id.

Usage::

    gate = AuthorizationGate(resolver, db_manager.dependency)

    @router.post("/bookings/{booking_id}/status")
    async def update_status(user_id: Annotated[int, Depends(gate.require_permission("booking:update_status"))]): ...
"""

import json
import logging
from collections.abc import AsyncGenerator, Callable, Coroutine, Sequence
from typing import Annotated, Any, TypeAlias

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fixer_rbac.constants import ADMIN_USER_TYPES, RESOURCE_OWNER_PATH_PARAMS
from fixer_rbac.rbac.resolver import PermissionResolver

logger = logging.getLogger(__name__)

GateDependency: TypeAlias = Callable[..., Coroutine[Any, Any, int]]
SessionProvider: TypeAlias = Callable[[], AsyncGenerator[AsyncSession]]

OWNERSHIP_DENIED_DETAIL = "Access denied. You can only access your own resources or have specific permissions."


class AuthorizationGate:
    """Turns resolver outcomes into HTTP 401/403/500 or a pass."""

    def __init__(self, resolver: PermissionResolver, session_dependency: SessionProvider) -> None:
        self._resolver = resolver
        self._session_dependency = session_dependency

    def require_permission(self, permission: str) -> GateDependency:
        """401 without a caller, 403 with the resolver's reason, 500 if the check itself failed."""

        async def _dependency(
            request: Request,
            session: Annotated[AsyncSession, Depends(self._session_dependency)],
        ) -> int:
            user_id = self._require_identity(request)
            try:
                context = await self.build_context(request)
                result = await self._resolver.check_permission(user_id, permission, session, context)
            except Exception as exc:
                raise self._internal_error(exc) from exc

            if result.error:
                raise HTTPException(status_code=500, detail="Permission check failed")
            if not result.allowed:
                raise HTTPException(status_code=403, detail=result.reason or "Insufficient permissions")

            request.state.rbac_context = context
            return user_id

        return _dependency

    def require_any_permission(self, permissions: Sequence[str]) -> GateDependency:
        """403 unless at least one of *permissions* resolves allowed; 500 if every check failed."""
        required = tuple(permissions)

        async def _dependency(
            request: Request,
            session: Annotated[AsyncSession, Depends(self._session_dependency)],
        ) -> int:
            user_id = self._require_identity(request)
            try:
                context = await self.build_context(request)
                results = await self._resolver.check_permissions(user_id, required, session, context)
            except Exception as exc:
                raise self._internal_error(exc) from exc

            if not any(r.allowed for r in results.values()):
                if results and all(r.error for r in results.values()):
                    raise HTTPException(status_code=500, detail="Permission check failed")
                raise HTTPException(status_code=403, detail="Insufficient permissions")

            request.state.rbac_context = context
            return user_id

        return _dependency

    def require_all_permissions(self, permissions: Sequence[str]) -> GateDependency:
        """403 unless every one of *permissions* resolves allowed; 500 if any check failed."""
        required = tuple(permissions)

        async def _dependency(
            request: Request,
            session: Annotated[AsyncSession, Depends(self._session_dependency)],
        ) -> int:
            user_id = self._require_identity(request)
            try:
                context = await self.build_context(request)
                results = await self._resolver.check_permissions(user_id, required, session, context)
            except Exception as exc:
                raise self._internal_error(exc) from exc

            if any(r.error for r in results.values()):
                raise HTTPException(status_code=500, detail="Permission check failed")
            if not all(r.allowed for r in results.values()):
                raise HTTPException(status_code=403, detail="Insufficient permissions")

            request.state.rbac_context = context
            return user_id

        return _dependency

    def require_ownership_or_permission(self, permission: str, owner_field: str = "id") -> GateDependency:
        """Pass owners of the addressed resource and admins; everyone else needs *permission*.

        The owner is the path parameter *owner_field*; it is compared with the
        caller's id as a string.
        """

        async def _dependency(
            request: Request,
            session: Annotated[AsyncSession, Depends(self._session_dependency)],
        ) -> int:
            user_id = self._require_identity(request)
            user_type = getattr(request.state, "user_type", None)
            try:
                owner_id = request.path_params.get(owner_field)
                context = await self.build_context(request, resource_owner_id=owner_id)
                if (owner_id is not None and str(user_id) == str(owner_id)) or user_type in ADMIN_USER_TYPES:
                    request.state.rbac_context = context
                    return user_id
                result = await self._resolver.check_permission(user_id, permission, session, context)
            except Exception as exc:
                raise self._internal_error(exc) from exc

            if result.error:
                raise HTTPException(status_code=500, detail="Permission check failed")
            if not result.allowed:
                raise HTTPException(status_code=403, detail=OWNERSHIP_DENIED_DETAIL)

            request.state.rbac_context = context
            return user_id

        return _dependency

    @staticmethod
    async def build_context(request: Request, *, resource_owner_id: Any = None) -> dict[str, Any]:
        """Condition context for the current request.

        ``resource_owner_id`` defaults to the first of the ``user_id``,
        ``customer_id`` and ``provider_id`` path parameters present. Numeric
        owner ids become ``int`` so they compare equal to ``user_id`` under
        strict condition equality. ``resource_data`` is the JSON request body,
        or ``None``.
        """
        if resource_owner_id is None:
            resource_owner_id = next(
                (request.path_params[name] for name in RESOURCE_OWNER_PATH_PARAMS if name in request.path_params),
                None,
            )
        return {
            "user_id": getattr(request.state, "user_id", None),
            "user_type": getattr(request.state, "user_type", None),
            "roles": [],
            "permissions": [],
            "resource_owner_id": _normalise_owner_id(resource_owner_id),
            "resource_data": await _read_json_body(request),
        }

    @staticmethod
    def _require_identity(request: Request) -> int:
        user_id: int | None = getattr(request.state, "user_id", None)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Authentication required")
        return user_id

    @staticmethod
    def _internal_error(exc: Exception) -> HTTPException:
        logger.exception("Permission check failed: %s", exc)
        return HTTPException(status_code=500, detail="Permission check failed")


def _normalise_owner_id(value: Any) -> Any:
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return int(value)
    return value


async def _read_json_body(request: Request) -> Any:
    if request.method in ("GET", "HEAD", "DELETE", "OPTIONS"):
        return None
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None
