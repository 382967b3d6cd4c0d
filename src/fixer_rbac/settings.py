"""Service settings loaded from environment variables."""

import functools

from pydantic_settings import BaseSettings

from fixer_rbac.constants import DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES, DEFAULT_DATABASE_URL


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    use_null_pool: bool = True
    pool_pre_ping: bool = True
    pool_size: int = 5  # Ignored when use_null_pool is set

    model_config = {"env_prefix": ""}


class AppSettings(BaseSettings):
    """RBAC service configuration."""

    # JWT verification (tokens are issued by the marketplace auth service)
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES

    # CORS
    CORS_ALLOWED_ORIGINS: str = "http://localhost:3000"  # comma-separated origins

    # Seed system roles and the permission catalog on startup
    RBAC_BOOTSTRAP_ON_STARTUP: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = {"env_prefix": ""}


@functools.lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return cached application settings singleton."""
    return AppSettings()
