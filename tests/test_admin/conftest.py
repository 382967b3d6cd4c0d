"""Fixtures for the admin API tests: a file-backed database, the app, and bearer tokens."""

from collections.abc import AsyncGenerator, Callable
from typing import TypeAlias
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fixer_rbac.auth.jwt import JWTService
from fixer_rbac.db.base import Base
from fixer_rbac.db.models import User
from fixer_rbac.db.session import DatabaseManager
from fixer_rbac.main import create_app
from fixer_rbac.rbac.catalog import SystemRoles, bootstrap_catalog
from fixer_rbac.rbac.repository import RBACRepository
from fixer_rbac.settings import AppSettings, DatabaseSettings

TEST_JWT_KEY = "admin-api-test-signing-key-0123456789"

AuthHeaders: TypeAlias = Callable[[int, str], dict[str, str]]


@pytest.fixture
async def db(tmp_path: Path) -> AsyncGenerator[DatabaseManager]:
    manager = DatabaseManager(DatabaseSettings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'admin_api.db'}"))
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.dispose()


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(JWT_SECRET_KEY=TEST_JWT_KEY, RBAC_BOOTSTRAP_ON_STARTUP=False)


@pytest.fixture
def client(db: DatabaseManager, settings: AppSettings) -> TestClient:
    return TestClient(create_app(settings=settings, db_manager=db))


@pytest.fixture
def auth(settings: AppSettings) -> AuthHeaders:
    """Build Authorization headers for a user id and user type."""
    jwt_service = JWTService(settings)

    def _headers(user_id: int, user_type: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {jwt_service.create_access_token(user_id, user_type)}"}

    return _headers


@pytest.fixture
async def seeded(db: DatabaseManager) -> dict[str, int]:
    """Bootstrap the catalog and create one user per staff/member role."""
    repo = RBACRepository()
    async with db.session() as session:
        await bootstrap_catalog(repo, session)

        users = {
            "admin_id": (User(email="admin@fixer.test", first_name="Ada", user_type="admin"), SystemRoles.SUPER_ADMIN),
            "moderator_id": (User(email="mod@fixer.test", user_type="moderator"), SystemRoles.MODERATOR),
            "provider_id": (User(email="pro@fixer.test", user_type="provider"), SystemRoles.PROVIDER),
            "customer_id": (User(email="cust@fixer.test", user_type="customer"), SystemRoles.CUSTOMER),
        }
        session.add_all([user for user, _ in users.values()])
        applicant = User(email="applicant@fixer.test", first_name="Ana", phone="555-0199", user_type="provider")
        session.add(applicant)
        await session.flush()

        for user, role_name in users.values():
            role = await repo.get_role_by_name(role_name, session)
            assert role is not None
            await repo.assign_role_to_user(user.id, role.id, session)

        ids = {key: user.id for key, (user, _) in users.items()}
        ids["applicant_id"] = applicant.id
        return ids
