"""Explicit wiring of the RBAC components.

One store, one resolver bound to it, one workflow, and one gate are built
when the application starts and handed to the routers that need them.
"""

from dataclasses import dataclass

from fixer_rbac.admin.service import AdminService
from fixer_rbac.auth.permissions import AuthorizationGate
from fixer_rbac.db.session import DatabaseManager
from fixer_rbac.rbac.approvals import ApprovalWorkflow
from fixer_rbac.rbac.repository import RBACRepository
from fixer_rbac.rbac.resolver import PermissionResolver


@dataclass(frozen=True, slots=True)
class RBACComponents:
    db: DatabaseManager
    repository: RBACRepository
    resolver: PermissionResolver
    workflow: ApprovalWorkflow
    gate: AuthorizationGate
    admin: AdminService


def build_rbac_components(db_manager: DatabaseManager) -> RBACComponents:
    repository = RBACRepository()
    resolver = PermissionResolver(repository)
    return RBACComponents(
        db=db_manager,
        repository=repository,
        resolver=resolver,
        workflow=ApprovalWorkflow(db_manager, repository),
        gate=AuthorizationGate(resolver, db_manager.dependency),
        admin=AdminService(repository),
    )
