"""
Request gate.

Per-request composition of identity, tenant binding and permission check:

    identity -> membership (skipped for super admins) -> permission

Produces a ``TenantContext`` or raises one of UnauthorizedException,
NoMembershipException, ForbiddenException (or NotFoundException for an
unknown tenant, to super admins only).
"""

import logging

from sqlalchemy.orm import Session

from trustee_portal.core.authorization import AuthorizationEngine, authorization_engine
from trustee_portal.core.exceptions import (
    ForbiddenException,
    NoMembershipException,
    NotFoundException,
    UnauthorizedException,
)
from trustee_portal.core.logging import get_audit_logger
from trustee_portal.core.security import Identity
from trustee_portal.models.audit_entry import AuditAction, ResourceType
from trustee_portal.models.role import Permission, Role
from trustee_portal.models.tenant_context import TenantContext
from trustee_portal.models.user import User
from trustee_portal.repositories.tenant_membership_repository import TenantMembershipRepository
from trustee_portal.repositories.tenant_repository import TenantRepository
from trustee_portal.repositories.user_repository import UserRepository
from trustee_portal.services.audit_service import AuditService

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


class RequestGate:
    def __init__(self, db: Session, engine: AuthorizationEngine = authorization_engine):
        self.db = db
        self.engine = engine
        self.user_repo = UserRepository(db)
        self.tenant_repo = TenantRepository(db)
        self.membership_repo = TenantMembershipRepository(db)
        self.audit = AuditService(db)

    def resolve_user(self, identity: Identity | None) -> User:
        """
        Map a verified identity onto the local User row.

        Raises:
            UnauthorizedException: If there is no identity
        """
        if identity is None:
            raise UnauthorizedException()
        return self.user_repo.get_or_create_by_auth_id(identity.auth_user_id, identity.email)

    def authorize(
        self,
        identity: Identity | None,
        tenant_id: int,
        permission: Permission | None = None,
    ) -> TenantContext:
        """
        Bind the request to a tenant and check a permission.

        Args:
            identity: Verified identity, None when the request carried none
            tenant_id: Tenant addressed by the request
            permission: Required permission; None only requires membership

        Returns:
            TenantContext for downstream services

        Raises:
            UnauthorizedException: No identity
            NotFoundException: Tenant does not exist and the caller is a super admin
            NoMembershipException: Not an active member and not a super admin,
                whether or not the tenant exists
            ForbiddenException: Member without the required permission
        """
        user = self.resolve_user(identity)

        tenant = self.tenant_repo.get_by_id(tenant_id)
        if tenant is None:
            if identity.is_super_admin:
                raise NotFoundException("Organization not found")
            # Same answer as an existing tenant the caller does not belong to
            audit_logger.warning("DENIED | principal=%s | tenant=%s | no membership", user.id, tenant_id)
            raise NoMembershipException()

        if identity.is_super_admin:
            audit_logger.debug("GRANTED | super admin %s | tenant=%s | %s", user.id, tenant_id, permission)
            return TenantContext(user=user, tenant=tenant, role=Role.SUPER_ADMIN, engine=self.engine)

        membership = self.membership_repo.get_active_membership(user.id, tenant_id)
        if membership is None:
            self._record_denial(user.id, tenant_id, permission, "no membership")
            raise NoMembershipException()

        if permission is not None and not self.engine.has_permission(membership.role, permission):
            self._record_denial(user.id, tenant_id, permission, f"role {membership.role.value}")
            raise ForbiddenException(f"Missing permission: {permission.value}")

        audit_logger.debug(
            "GRANTED | principal=%s | tenant=%s | role=%s | %s",
            user.id, tenant_id, membership.role.value, permission.value if permission else "membership",
        )
        return TenantContext(
            user=user, tenant=tenant, role=membership.role, membership=membership, engine=self.engine
        )

    def _record_denial(self, principal_id: int, tenant_id: int, permission: Permission | None, reason: str) -> None:
        required = permission.value if permission else "membership"
        audit_logger.warning("DENIED | principal=%s | tenant=%s | %s | %s", principal_id, tenant_id, required, reason)
        self.audit.record(
            AuditAction.ACCESS_DENIED,
            ResourceType.TENANT,
            tenant_id=tenant_id,
            principal_id=principal_id,
            resource_id=tenant_id,
            details={"required": required, "reason": reason},
        )
