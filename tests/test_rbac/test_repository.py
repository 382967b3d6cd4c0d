"""Tests for RBACRepository."""

from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from fixer_rbac.db.base import Base, utc_now
from fixer_rbac.db.enums import ApprovalStatus
from fixer_rbac.db.models import Role, RolePermission, User, UserApproval, UserRole
from fixer_rbac.rbac.exceptions import DuplicateApprovalError, InvalidPermissionNameError
from fixer_rbac.rbac.repository import RBACRepository


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess
        await sess.commit()


@pytest.fixture
def repo() -> RBACRepository:
    return RBACRepository()


@pytest.fixture
async def seeded_data(repo: RBACRepository, session: AsyncSession) -> dict[str, int]:
    admin = User(email="admin@example.com", first_name="Ada", user_type="admin")
    target = User(email="pro@example.com", first_name="Pat", last_name="Pro", phone="555-0100", user_type="provider")
    session.add_all([admin, target])
    await session.flush()

    p_read = await repo.create_permission("booking:read", session)
    p_status = await repo.create_permission("booking:update_status", session)
    provider = await repo.create_role("provider", session, description="Service provider access", is_system=True)
    await repo.assign_permission_to_role(provider.id, p_read.id, session)
    await repo.assign_permission_to_role(
        provider.id,
        p_status.id,
        session,
        conditions=[{"field": "resource_owner_id", "operator": "equals", "value": "u1"}],
    )
    return {
        "admin_id": admin.id,
        "user_id": target.id,
        "provider_role_id": provider.id,
        "p_read_id": p_read.id,
        "p_status_id": p_status.id,
    }


class TestCatalogRows:
    async def test_create_permission_splits_name(self, repo: RBACRepository, session: AsyncSession) -> None:
        perm = await repo.create_permission("service_request:update_status", session, description="Update status")
        assert (perm.resource, perm.action) == ("service_request", "update_status")
        assert perm.is_active is True

    @pytest.mark.parametrize("name", ["booking", "booking:", ":read", "Booking:Read", "booking:read:all", "a b:c"])
    async def test_create_permission_rejects_bad_names(
        self, repo: RBACRepository, session: AsyncSession, name: str
    ) -> None:
        with pytest.raises(InvalidPermissionNameError):
            await repo.create_permission(name, session)

    async def test_lookups_skip_inactive(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        role = await repo.get_role(seeded_data["provider_role_id"], session)
        assert role is not None
        role.is_active = False
        await session.flush()

        assert await repo.get_role_by_name("provider", session) is None
        assert await repo.get_role_by_name("provider", session, active_only=False) is not None
        assert await repo.get_all_roles(session) == []

    async def test_get_all_roles_loads_grants(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        roles = await repo.get_all_roles(session)
        assert [r.name for r in roles] == ["provider"]
        assert {rp.permission.name for rp in roles[0].role_permissions} == {"booking:read", "booking:update_status"}

    async def test_get_all_permissions_sorted(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        names = [p.name for p in await repo.get_all_permissions(session)]
        assert names == ["booking:read", "booking:update_status"]

    async def test_assign_permission_to_role_upserts(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        conditions = [{"field": "resource_data.status", "operator": "in", "value": ["pending"]}]
        await repo.assign_permission_to_role(
            seeded_data["provider_role_id"], seeded_data["p_read_id"], session, conditions=conditions
        )
        await repo.assign_permission_to_role(
            seeded_data["provider_role_id"], seeded_data["p_read_id"], session, granted=False, conditions=conditions
        )

        rows = (
            await session.execute(
                select(RolePermission).where(
                    RolePermission.role_id == seeded_data["provider_role_id"],
                    RolePermission.permission_id == seeded_data["p_read_id"],
                )
            )
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].granted is False
        assert rows[0].conditions == conditions

    async def test_get_role_permissions_only_granted(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        await repo.assign_permission_to_role(
            seeded_data["provider_role_id"], seeded_data["p_read_id"], session, granted=False
        )
        grants = await repo.get_role_permissions(seeded_data["provider_role_id"], session)
        assert [g.permission for g in grants] == ["booking:update_status"]
        assert grants[0].conditions == [{"field": "resource_owner_id", "operator": "equals", "value": "u1"}]


class TestUserGrants:
    async def test_assign_role_then_reassign_reactivates(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        uid, rid = seeded_data["user_id"], seeded_data["provider_role_id"]
        await repo.assign_role_to_user(uid, rid, session, assigned_by=seeded_data["admin_id"])
        assert await repo.remove_role_from_user(uid, rid, session) is True
        assert await repo.get_user_roles(uid, session) == []

        expiry = utc_now() + timedelta(days=30)
        await repo.assign_role_to_user(uid, rid, session, assigned_by=seeded_data["admin_id"], expires_at=expiry)

        count = await session.scalar(select(func.count(UserRole.id)).where(UserRole.user_id == uid))
        assert count == 1
        roles = await repo.get_user_roles(uid, session)
        assert [ur.role.name for ur in roles] == ["provider"]
        assert roles[0].assigned_by == seeded_data["admin_id"]

    async def test_remove_role_without_assignment(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        removed = await repo.remove_role_from_user(seeded_data["user_id"], seeded_data["provider_role_id"], session)
        assert removed is False

    async def test_get_user_roles_newest_first(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        uid = seeded_data["user_id"]
        moderator = await repo.create_role("moderator", session)
        session.add_all(
            [
                UserRole(
                    user_id=uid, role_id=seeded_data["provider_role_id"], assigned_at=utc_now() - timedelta(days=2)
                ),
                UserRole(user_id=uid, role_id=moderator.id, assigned_at=utc_now() - timedelta(days=1)),
            ]
        )
        await session.flush()

        assert [ur.role.name for ur in await repo.get_user_roles(uid, session)] == ["moderator", "provider"]

    async def test_get_user_roles_skips_expired(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        uid = seeded_data["user_id"]
        await repo.assign_role_to_user(
            uid, seeded_data["provider_role_id"], session, expires_at=utc_now() - timedelta(seconds=1)
        )
        assert await repo.get_user_roles(uid, session) == []

    async def test_direct_permissions_include_revocations(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        uid = seeded_data["user_id"]
        await repo.set_user_permission(uid, seeded_data["p_read_id"], session, granted=True)
        await repo.set_user_permission(uid, seeded_data["p_status_id"], session, granted=False)

        assert await repo.get_user_direct_permissions(uid, session) == {
            "booking:read": True,
            "booking:update_status": False,
        }

    async def test_set_user_permission_overwrites(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        uid = seeded_data["user_id"]
        first = await repo.set_user_permission(uid, seeded_data["p_read_id"], session, granted=True)
        second = await repo.set_user_permission(uid, seeded_data["p_read_id"], session, granted=False)
        assert first.id == second.id
        assert await repo.get_user_direct_permissions(uid, session) == {"booking:read": False}

    async def test_user_permission_names_union_minus_revoked(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        uid = seeded_data["user_id"]
        extra = await repo.create_permission("quote:create", session)
        await repo.assign_role_to_user(uid, seeded_data["provider_role_id"], session)
        await repo.set_user_permission(uid, extra.id, session)
        await repo.set_user_permission(uid, seeded_data["p_read_id"], session, granted=False)

        assert await repo.get_user_permissions(uid, session) == {"booking:update_status", "quote:create"}


class TestApprovalRows:
    async def test_create_and_list_pending(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        first = await repo.create_user_approval(seeded_data["user_id"], "provider", seeded_data["admin_id"], session)
        first.requested_at = utc_now() - timedelta(hours=1)
        second = await repo.create_user_approval(
            seeded_data["user_id"], "moderator", seeded_data["admin_id"], session, notes="Needs moderation rights"
        )
        await session.flush()

        pending = await repo.get_pending_user_approvals(session)
        assert [p.id for p in pending] == [second.id, first.id]
        assert pending[0].email == "pro@example.com"
        assert (pending[0].first_name, pending[0].last_name, pending[0].phone) == ("Pat", "Pro", "555-0100")
        assert pending[0].requested_by_email == "admin@example.com"
        assert pending[0].requested_by_first_name == "Ada"
        assert pending[0].approval_notes == "Needs moderation rights"

    async def test_self_requested_approval_has_no_requester_fields(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        await repo.create_user_approval(seeded_data["user_id"], "provider", None, session)
        (pending,) = await repo.get_pending_user_approvals(session)
        assert pending.requested_by is None
        assert pending.requested_by_email is None

    async def test_duplicate_pending_rejected(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        await repo.create_user_approval(seeded_data["user_id"], "provider", seeded_data["admin_id"], session)
        with pytest.raises(DuplicateApprovalError) as exc_info:
            await repo.create_user_approval(seeded_data["user_id"], "provider", seeded_data["admin_id"], session)
        assert exc_info.value.requested_role == "provider"

    async def test_new_request_allowed_after_resolution(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        first = await repo.create_user_approval(seeded_data["user_id"], "provider", None, session)
        await repo.mark_approval_rejected(first.id, seeded_data["admin_id"], "Incomplete profile", session)

        second = await repo.create_user_approval(seeded_data["user_id"], "provider", None, session)
        assert second.id != first.id

    async def test_mark_approved_only_once(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        approval = await repo.create_user_approval(seeded_data["user_id"], "provider", None, session)

        claimed = await repo.mark_approval_approved(approval.id, seeded_data["admin_id"], session, notes="ok")
        assert claimed == (seeded_data["user_id"], "provider")
        assert await repo.mark_approval_approved(approval.id, seeded_data["admin_id"], session) is None
        assert await repo.mark_approval_rejected(approval.id, seeded_data["admin_id"], "late", session) is None

        row = await session.scalar(
            select(UserApproval).where(UserApproval.id == approval.id).execution_options(populate_existing=True)
        )
        assert row is not None
        assert row.status == ApprovalStatus.APPROVED
        assert row.approved_by == seeded_data["admin_id"]
        assert row.approval_notes == "ok"

    async def test_mark_unknown_approval(self, repo: RBACRepository, session: AsyncSession) -> None:
        assert await repo.mark_approval_approved(12345, 1, session) is None

    async def test_set_user_approval_status(
        self, repo: RBACRepository, session: AsyncSession, seeded_data: dict[str, int]
    ) -> None:
        await repo.set_user_approval_status(
            seeded_data["user_id"], ApprovalStatus.APPROVED, session, approved_by=seeded_data["admin_id"]
        )
        user = await session.scalar(
            select(User).where(User.id == seeded_data["user_id"]).execution_options(populate_existing=True)
        )
        assert user is not None
        assert user.approval_status == ApprovalStatus.APPROVED
        assert user.approved_by == seeded_data["admin_id"]
        assert user.approved_at is not None


async def test_role_names_are_unique(repo: RBACRepository, session: AsyncSession) -> None:
    await repo.create_role("guest", session)
    with pytest.raises(IntegrityError):
        await repo.create_role("guest", session)
    await session.rollback()
    assert await session.scalar(select(func.count(Role.id))) == 0
