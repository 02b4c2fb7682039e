"""Tenant context for request authorization."""

from dataclasses import dataclass
from trustee_portal.core.authorization import AuthorizationEngine, authorization_engine
from trustee_portal.models.role import Permission, Role
from trustee_portal.models.tenant import Tenant
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.models.user import User


@dataclass
class TenantContext:
    """
    Complete tenant context for request authorization.

    Produced by the request gate after identity, tenant binding and
    membership have been verified. Super administrators get a context
    with role SUPER_ADMIN and no membership.

    Attributes:
        user: The authenticated User object
        tenant: The Tenant the user is accessing
        role: The user's effective role within this tenant
        membership: The user's active membership, None for super admins
    """

    user: User
    tenant: Tenant
    role: Role
    membership: TenantMembership | None = None
    engine: AuthorizationEngine = authorization_engine

    @property
    def principal_id(self) -> int:
        return self.user.id

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    def has_permission(self, permission: Permission) -> bool:
        return self.engine.has_permission(self.role, permission)

    def has_minimum_role(self, required_role: Role) -> bool:
        return self.engine.has_minimum_role(self.role, required_role)

    def __repr__(self) -> str:
        return f"<TenantContext(user_id={self.user.id}, tenant_id={self.tenant.id}, role={self.role.value})>"
