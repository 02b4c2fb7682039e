from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from trustee_portal.database import get_db
from trustee_portal.dependencies import get_current_user, require_permission
from trustee_portal.models.role import Permission
from trustee_portal.models.tenant_context import TenantContext
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.models.user import User
from trustee_portal.services.membership_service import MembershipService
from trustee_portal.services.tenant_service import TenantService
from trustee_portal.schemas.tenant_schemas import (
    OwnershipTransferRequest,
    TenantCreate,
    TenantMemberRemoveResponse,
    TenantMemberResponse,
    TenantResponse,
    TenantRoleUpdate,
    UserTenantResponse,
)

router = APIRouter()


def _member_response(membership: TenantMembership) -> dict:
    return {
        "id": membership.id,
        "user_id": membership.user_id,
        "auth_user_id": membership.user.auth_user_id,
        "email": membership.user.email,
        "role": membership.role,
        "is_active": membership.is_active,
        "joined_at": membership.joined_at,
        "term_start": membership.term_start,
        "term_end": membership.term_end,
    }


@router.post("", response_model=UserTenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    payload: TenantCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create an organization.

    The authenticated user becomes its OWNER.
    """
    tenant, membership = TenantService(db).create_tenant(payload.name, payload.slug, user)
    return {
        "id": tenant.id,
        "name": tenant.name,
        "slug": tenant.slug,
        "role": membership.role,
        "membership_id": membership.id,
        "created_at": tenant.created_at,
        "updated_at": tenant.updated_at,
    }


@router.get("", response_model=list[UserTenantResponse])
async def list_user_tenants(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    List all organizations the authenticated user actively belongs to.

    Does not require a tenant context; useful for tenant switching.
    """
    return TenantService(db).list_user_tenants(user)


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    context: TenantContext = Depends(require_permission(Permission.ORG_VIEW)),
):
    """Get organization details."""
    return context.tenant


@router.get("/{tenant_id}/members", response_model=list[TenantMemberResponse])
async def list_members(
    include_inactive: bool = Query(False),
    context: TenantContext = Depends(require_permission(Permission.USER_VIEW)),
    db: Session = Depends(get_db),
):
    """
    List members of the organization.

    - **Requires user:view**
    - Soft-removed members are only listed with include_inactive=true
    """
    memberships = MembershipService(db).list_members(context.tenant.id, include_inactive=include_inactive)
    return [_member_response(m) for m in memberships]


@router.patch("/{tenant_id}/members/{membership_id}/role", response_model=TenantMemberResponse)
async def update_member_role(
    membership_id: int,
    role_update: TenantRoleUpdate,
    context: TenantContext = Depends(require_permission(Permission.ROLE_ASSIGN)),
    db: Session = Depends(get_db),
):
    """
    Change a member's role.

    - **Requires role:assign**
    - Caller must outrank both the current and the new role
    - Cannot change your own role (use ownership transfer)
    """
    membership = MembershipService(db).change_role(
        membership_id,
        role_update.role,
        changer_id=context.principal_id,
        changer_role=context.role,
        tenant_id=context.tenant.id,
    )
    return _member_response(membership)


@router.delete(
    "/{tenant_id}/members/{membership_id}",
    response_model=TenantMemberRemoveResponse,
    status_code=status.HTTP_200_OK,
)
async def remove_member(
    membership_id: int,
    context: TenantContext = Depends(require_permission(Permission.USER_DELETE)),
    db: Session = Depends(get_db),
):
    """
    Remove a member (soft; the membership is deactivated).

    - **Requires user:delete**
    - Cannot remove yourself or a member of equal or higher rank
    """
    MembershipService(db).deactivate(
        membership_id,
        caller_id=context.principal_id,
        caller_role=context.role,
        tenant_id=context.tenant.id,
    )
    return {"message": "Member removed successfully", "membership_id": membership_id}


@router.post("/{tenant_id}/ownership-transfer", response_model=TenantMemberResponse)
async def transfer_ownership(
    payload: OwnershipTransferRequest,
    context: TenantContext = Depends(require_permission(Permission.ORG_MANAGE)),
    db: Session = Depends(get_db),
):
    """
    Transfer ownership to another active member.

    - **Requires OWNER (or platform super admin)**
    - The previous owner becomes ADMIN
    """
    membership = MembershipService(db).transfer_ownership(
        context.tenant.id,
        payload.membership_id,
        caller_id=context.principal_id,
        caller_role=context.role,
    )
    return _member_response(membership)
