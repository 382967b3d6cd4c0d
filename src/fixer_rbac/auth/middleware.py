"""JWT authentication middleware: puts the caller's identity on ``request.state``."""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from fixer_rbac.auth.jwt import JWTError, JWTService

logger = logging.getLogger(__name__)

_SKIP_PREFIXES = ("/healthz", "/docs", "/openapi.json", "/redoc")


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Extract a JWT from the Authorization header or cookie and record who is calling.

    Sets on every request (even without a token):
    - ``request.state.user_id``: int | None
    - ``request.state.user_type``: str | None

    Never rejects a request; an invalid or expired token just leaves the
    request unauthenticated. Endpoints enforce access through the
    :class:`~fixer_rbac.auth.permissions.AuthorizationGate` dependencies.
    """

    def __init__(self, app: ASGIApp, jwt_service: JWTService) -> None:
        super().__init__(app)
        self._jwt = jwt_service

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.user_id = None
        request.state.user_type = None

        if request.url.path.startswith(_SKIP_PREFIXES):
            return await call_next(request)

        token = self._extract_token(request)
        if token is None:
            return await call_next(request)

        try:
            identity = self._jwt.decode_access_token(token)
        except JWTError as exc:
            logger.debug("Ignoring unusable token: %s", exc.detail)
            return await call_next(request)

        request.state.user_id = identity.user_id
        request.state.user_type = identity.user_type
        return await call_next(request)

    @staticmethod
    def _extract_token(request: Request) -> str | None:
        """Bearer header first, then the ``access_token`` cookie."""
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:] or None
        return request.cookies.get("access_token")
