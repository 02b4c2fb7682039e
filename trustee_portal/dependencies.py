from collections.abc import Callable

from fastapi import Depends, Path
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from trustee_portal.core.exceptions import UnauthorizedException
from trustee_portal.core.security import Identity, resolve_identity
from trustee_portal.database import get_db
from trustee_portal.models.role import Permission
from trustee_portal.models.tenant_context import TenantContext
from trustee_portal.models.user import User
from trustee_portal.services.notification_service import InvitationNotifier, LoggingInvitationNotifier
from trustee_portal.services.request_gate import RequestGate

# auto_error=False so a missing header reaches the gate as "no identity"
security = HTTPBearer(auto_error=False)

_default_notifier = LoggingInvitationNotifier()


async def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    """
    FastAPI dependency resolving the verified identity.

    Flow:
    1. Extract token from Authorization: Bearer <token>
    2. Validate JWT using shared SECRET_KEY
    3. Read 'sub', 'email' and 'is_super_admin' claims

    Raises:
        UnauthorizedException: If the header is missing or the token invalid
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException()
    return resolve_identity(credentials.credentials)


async def get_current_user(
    identity: Identity = Depends(get_identity), db: Session = Depends(get_db)
) -> User:
    """Get or auto-create the local User for the verified identity."""
    return RequestGate(db).resolve_user(identity)


def require_permission(permission: Permission | None = None) -> Callable[..., TenantContext]:
    """
    Build a dependency that gates a tenant-scoped route.

    The route must declare a ``tenant_id`` path parameter.

    Usage:
        @router.get("/{tenant_id}/members")
        def list_members(context: TenantContext = Depends(require_permission(Permission.USER_VIEW))):
            ...
    """

    async def _gate(
        tenant_id: int = Path(..., ge=1),
        identity: Identity = Depends(get_identity),
        db: Session = Depends(get_db),
    ) -> TenantContext:
        return RequestGate(db).authorize(identity, tenant_id, permission)

    return _gate


# Any active member (or super admin); the service decides the rest
require_membership = require_permission


def get_invitation_notifier() -> InvitationNotifier:
    return _default_notifier
