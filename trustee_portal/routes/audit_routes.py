from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trustee_portal.config import settings
from trustee_portal.database import get_db
from trustee_portal.dependencies import get_current_user, get_identity, require_permission
from trustee_portal.core.security import Identity
from trustee_portal.models.audit_entry import AuditAction, ResourceType
from trustee_portal.models.role import Permission
from trustee_portal.models.tenant_context import TenantContext
from trustee_portal.models.user import User
from trustee_portal.repositories.audit_repository import AuditFilters
from trustee_portal.services.audit_service import AuditService
from trustee_portal.schemas.audit_schemas import (
    AuditEntryResponse,
    AuditPageResponse,
    AuditPurgeResponse,
)

# Mounted under /api/tenants
tenant_router = APIRouter()

# Mounted under /api
router = APIRouter()


@tenant_router.get("/{tenant_id}/audit-logs", response_model=AuditPageResponse)
async def query_audit_logs(
    action: AuditAction | None = Query(None),
    resource_type: ResourceType | None = Query(None),
    principal_id: int | None = Query(None),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.AUDIT_PAGE_SIZE, ge=1, le=settings.AUDIT_MAX_PAGE_SIZE),
    context: TenantContext = Depends(require_permission(Permission.AUDIT_VIEW)),
    db: Session = Depends(get_db),
):
    """
    Page through the organization's audit trail, newest first.

    - **Requires audit:view**
    """
    filters = AuditFilters(
        action=action.value if action else None,
        resource_type=resource_type.value if resource_type else None,
        principal_id=principal_id,
        since=since,
        until=until,
    )
    result = AuditService(db).query(context.tenant.id, filters, page=page, page_size=page_size)
    return {
        "entries": result.entries,
        "total": result.total,
        "page": result.page,
        "page_size": result.page_size,
    }


@tenant_router.get(
    "/{tenant_id}/audit-logs/resources/{resource_type}/{resource_id}",
    response_model=list[AuditEntryResponse],
)
async def resource_history(
    resource_type: ResourceType,
    resource_id: str,
    context: TenantContext = Depends(require_permission(Permission.AUDIT_VIEW)),
    db: Session = Depends(get_db),
):
    """Audit trail of one resource within the organization."""
    return AuditService(db).resource_history(resource_type, resource_id, tenant_id=context.tenant.id)


@router.get("/users/me/activity", response_model=list[AuditEntryResponse])
async def my_activity(
    limit: int = Query(50, ge=1, le=settings.AUDIT_MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Recent audited actions performed by the authenticated user."""
    return AuditService(db).principal_activity(user.id, limit=limit)


@router.delete("/audit-logs", response_model=AuditPurgeResponse)
async def purge_audit_logs(
    older_than_days: int = Query(settings.AUDIT_RETENTION_DAYS, ge=0),
    identity: Identity = Depends(get_identity),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Retention sweep.

    - **Platform super administrators only**
    """
    deleted = AuditService(db).purge_older_than(
        older_than_days, caller_id=user.id, caller_is_super_admin=identity.is_super_admin
    )
    return {"deleted": deleted, "retention_days": older_than_days}
