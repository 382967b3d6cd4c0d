"""JWT access-token decoding (and issuing, for tools and tests)."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from fixer_rbac.settings import AppSettings

logger = logging.getLogger(__name__)


class JWTError(Exception):
    """Base exception for JWT operations."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class JWTExpiredError(JWTError):
    """Token has expired."""


class JWTInvalidError(JWTError):
    """Token is invalid (bad signature, malformed, wrong type, etc.)."""


@dataclass(frozen=True, slots=True)
class TokenIdentity:
    """Who an access token speaks for."""

    user_id: int
    user_type: str | None


class JWTService:
    """Validates marketplace access tokens signed with ``JWT_SECRET_KEY``.

    Tokens carry ``sub`` (the user id as a string), ``type`` (``"access"``)
    and ``user_type`` (``admin``, ``customer``, ...).
    """

    def __init__(self, settings: AppSettings) -> None:
        secret = settings.JWT_SECRET_KEY
        if not secret or not secret.strip():
            raise ValueError("JWT_SECRET_KEY must be set to a non-empty value for JWT verification")
        self._secret = secret
        self._algorithm = settings.JWT_ALGORITHM
        self._access_expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(self, user_id: int, user_type: str | None = None) -> str:
        now = datetime.now(UTC)
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "type": "access",
            "iat": now,
            "exp": now + timedelta(minutes=self._access_expire_minutes),
        }
        if user_type is not None:
            payload["user_type"] = user_type
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_access_token(self, token: str) -> TokenIdentity:
        """Decode and validate an access token.

        Raises:
            JWTExpiredError: If the token has expired.
            JWTInvalidError: If the token is malformed, wrong type, or bad signature.
        """
        payload = self._decode(token)
        if payload.get("type", "access") != "access":
            raise JWTInvalidError("Token is not an access token")
        user_type = payload.get("user_type")
        return TokenIdentity(
            user_id=self._parse_sub(payload["sub"]),
            user_type=str(user_type) if user_type is not None else None,
        )

    @staticmethod
    def _parse_sub(sub: Any) -> int:
        try:
            return int(sub)
        except (ValueError, TypeError) as exc:
            raise JWTInvalidError(f"Invalid 'sub' claim: {sub!r}") from exc

    def _decode(self, token: str) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise JWTExpiredError("Token has expired") from exc
        except jwt.InvalidTokenError as exc:
            raise JWTInvalidError(f"Invalid token: {exc}") from exc

        if "sub" not in payload:
            raise JWTInvalidError("Token missing 'sub' claim")

        return payload
