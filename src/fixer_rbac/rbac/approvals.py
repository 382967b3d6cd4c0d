"""Approval Workflow: the pending → approved / rejected state machine for user elevation.

Approve and reject each run in a transaction of their own, opened from the
:class:`~fixer_rbac.db.session.DatabaseManager` rather than borrowed from the
request. The conditional ``UPDATE ... WHERE status = 'pending'`` is what
serializes competing resolvers: whoever claims the row first wins, everyone
else sees zero rows and gets ``False``.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fixer_rbac.db.enums import ApprovalStatus
from fixer_rbac.db.models import UserApproval
from fixer_rbac.db.session import DatabaseManager
from fixer_rbac.rbac.exceptions import ApprovalValidationError
from fixer_rbac.rbac.repository import PendingApproval, RBACRepository

logger = logging.getLogger(__name__)


class ApprovalWorkflow:
    """Creates and resolves user approval requests."""

    def __init__(self, db_manager: DatabaseManager, repository: RBACRepository) -> None:
        self._db = db_manager
        self._repository = repository

    async def create_user_approval(
        self,
        user_id: int,
        requested_role: str,
        requested_by: int | None,
        session: AsyncSession,
        notes: str | None = None,
    ) -> UserApproval:
        """Open a pending request for *user_id* to be granted *requested_role*.

        Raises:
            ApprovalValidationError: *requested_role* is empty.
            DuplicateApprovalError: The same request is already pending.
        """
        if not requested_role or not requested_role.strip():
            raise ApprovalValidationError("Role name is required")
        approval = await self._repository.create_user_approval(
            user_id, requested_role.strip(), requested_by, session, notes=notes
        )
        logger.info("Approval %d opened: user %d requests role '%s'", approval.id, user_id, approval.requested_role)
        return approval

    async def approve_user(self, approval_id: int, approved_by: int, notes: str | None = None) -> bool:
        """Approve a pending request, assigning the role and marking the user approved.

        All writes commit together. Returns ``False`` (with nothing written)
        when the approval is not pending any more or the requested role does
        not exist; raises on store failure after rolling back.
        """
        async with self._db.session() as session:
            claimed = await self._repository.mark_approval_approved(approval_id, approved_by, session, notes=notes)
            if claimed is None:
                await session.rollback()
                logger.warning("Approval %d not found or already processed", approval_id)
                return False

            user_id, requested_role = claimed
            role = await self._repository.get_role_by_name(requested_role, session)
            if role is None:
                await session.rollback()
                logger.warning("Approval %d names unknown role '%s'; left pending", approval_id, requested_role)
                return False

            await self._repository.assign_role_to_user(user_id, role.id, session, assigned_by=approved_by)
            await self._repository.set_user_approval_status(
                user_id, ApprovalStatus.APPROVED, session, approved_by=approved_by
            )

        logger.info(
            "Approval %d approved by user %d: role '%s' assigned to user %d",
            approval_id,
            approved_by,
            requested_role,
            user_id,
        )
        return True

    async def reject_user(self, approval_id: int, rejected_by: int, reason: str | None) -> bool:
        """Reject a pending request. No role is touched.

        Raises:
            ApprovalValidationError: *reason* is missing or blank; raised before
                any database work.
        """
        if reason is None or not reason.strip():
            raise ApprovalValidationError("Rejection reason is required")

        async with self._db.session() as session:
            claimed = await self._repository.mark_approval_rejected(approval_id, rejected_by, reason.strip(), session)
            if claimed is None:
                await session.rollback()
                logger.warning("Approval %d not found or already processed", approval_id)
                return False

            user_id, _ = claimed
            await self._repository.set_user_approval_status(user_id, ApprovalStatus.REJECTED, session)

        logger.info("Approval %d rejected by user %d", approval_id, rejected_by)
        return True

    async def get_pending_user_approvals(self, session: AsyncSession) -> list[PendingApproval]:
        return await self._repository.get_pending_user_approvals(session)
