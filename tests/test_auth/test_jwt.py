"""Tests for JWTService: token issuing and validation."""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt as pyjwt
import pytest

from fixer_rbac.auth.jwt import JWTExpiredError, JWTInvalidError, JWTService, TokenIdentity
from fixer_rbac.settings import AppSettings

TEST_KEY = "unit-test-signing-key-0123456789abcdef"


def _service(**overrides: Any) -> JWTService:
    return JWTService(AppSettings(JWT_SECRET_KEY=TEST_KEY, **overrides))


def _encode(payload: dict[str, Any], key: str = TEST_KEY) -> str:
    return pyjwt.encode(payload, key, algorithm="HS256")


def test_create_and_decode_access_token() -> None:
    """Access token round-trips with its user type."""
    svc = _service()
    token = svc.create_access_token(42, "provider")
    assert svc.decode_access_token(token) == TokenIdentity(user_id=42, user_type="provider")


def test_user_type_optional() -> None:
    svc = _service()
    assert svc.decode_access_token(svc.create_access_token(7)).user_type is None


def test_empty_secret_refused() -> None:
    """An unset signing key is a configuration error, not an open door."""
    with pytest.raises(ValueError, match="JWT_SECRET_KEY"):
        JWTService(AppSettings(JWT_SECRET_KEY="   "))


def test_expired_access_token() -> None:
    """Expired access token raises JWTExpiredError."""
    payload = {
        "sub": "1",
        "type": "access",
        "iat": datetime.now(UTC) - timedelta(hours=1),
        "exp": datetime.now(UTC) - timedelta(seconds=1),
    }
    with pytest.raises(JWTExpiredError, match="expired"):
        _service().decode_access_token(_encode(payload))


def test_wrong_signature_rejected() -> None:
    token = _service().create_access_token(1)
    other = JWTService(AppSettings(JWT_SECRET_KEY="a-completely-different-signing-key"))
    with pytest.raises(JWTInvalidError):
        other.decode_access_token(token)


def test_refresh_token_rejected() -> None:
    """Only access tokens identify a caller."""
    payload = {"sub": "1", "type": "refresh", "exp": datetime.now(UTC) + timedelta(minutes=5)}
    with pytest.raises(JWTInvalidError, match="not an access token"):
        _service().decode_access_token(_encode(payload))


def test_missing_type_treated_as_access() -> None:
    payload = {"sub": "5", "user_type": "customer", "exp": datetime.now(UTC) + timedelta(minutes=5)}
    assert _service().decode_access_token(_encode(payload)) == TokenIdentity(user_id=5, user_type="customer")


def test_missing_sub_rejected() -> None:
    payload = {"type": "access", "exp": datetime.now(UTC) + timedelta(minutes=5)}
    with pytest.raises(JWTInvalidError, match="sub"):
        _service().decode_access_token(_encode(payload))


def test_non_numeric_sub_rejected() -> None:
    payload = {"sub": "abc", "type": "access", "exp": datetime.now(UTC) + timedelta(minutes=5)}
    with pytest.raises(JWTInvalidError, match="sub"):
        _service().decode_access_token(_encode(payload))


def test_garbage_token_rejected() -> None:
    with pytest.raises(JWTInvalidError):
        _service().decode_access_token("not.a.jwt")


def test_expiry_follows_settings() -> None:
    token = _service(JWT_ACCESS_TOKEN_EXPIRE_MINUTES=30).create_access_token(3)
    claims = pyjwt.decode(token, TEST_KEY, algorithms=["HS256"])
    assert claims["exp"] - claims["iat"] == 30 * 60
