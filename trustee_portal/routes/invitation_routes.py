from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from trustee_portal.database import get_db
from trustee_portal.dependencies import (
    get_current_user,
    get_invitation_notifier,
    require_membership,
    require_permission,
)
from trustee_portal.models.invitation import Invitation, InvitationStatus
from trustee_portal.models.role import Permission
from trustee_portal.models.tenant_context import TenantContext
from trustee_portal.models.user import User
from trustee_portal.services.invitation_service import InvitationService
from trustee_portal.services.notification_service import InvitationNotifier
from trustee_portal.schemas.invitation_schemas import (
    InvitationAcceptRequest,
    InvitationAcceptResponse,
    InvitationCreate,
    InvitationPreviewResponse,
    InvitationResponse,
)

# Mounted under /api/tenants
tenant_router = APIRouter()

# Mounted under /api/invitations
public_router = APIRouter()


def _invitation_response(invitation: Invitation, status_: InvitationStatus) -> dict:
    return {
        "id": invitation.id,
        "tenant_id": invitation.tenant_id,
        "email": invitation.email,
        "role": invitation.role,
        "status": status_,
        "issued_by": invitation.issued_by,
        "issued_at": invitation.issued_at,
        "expires_at": invitation.expires_at,
        "accepted_at": invitation.accepted_at,
        "cancelled_at": invitation.cancelled_at,
    }


@tenant_router.post(
    "/{tenant_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_invitation(
    payload: InvitationCreate,
    context: TenantContext = Depends(require_permission(Permission.USER_INVITE)),
    db: Session = Depends(get_db),
    notifier: InvitationNotifier = Depends(get_invitation_notifier),
):
    """
    Invite someone to the organization by email.

    - **Requires user:invite**
    - Invitable roles are those at or below the caller's rank
    - The accept link is delivered to the recipient only; it is not returned here
    """
    issued = InvitationService(db, notifier=notifier).issue(
        context.tenant.id,
        str(payload.email),
        payload.role,
        issuer_id=context.principal_id,
        issuer_role=context.role,
        term_start=payload.term_start,
        term_end=payload.term_end,
    )
    return _invitation_response(issued.invitation, InvitationStatus.PENDING)


@tenant_router.get("/{tenant_id}/invitations", response_model=list[InvitationResponse])
async def list_invitations(
    context: TenantContext = Depends(require_permission(Permission.USER_INVITE)),
    db: Session = Depends(get_db),
):
    """List the organization's invitations, newest first."""
    return [
        _invitation_response(inv, status_)
        for inv, status_ in InvitationService(db).list_invitations(context.tenant.id)
    ]


@tenant_router.delete("/{tenant_id}/invitations/{invitation_id}", response_model=InvitationResponse)
async def cancel_invitation(
    invitation_id: int,
    context: TenantContext = Depends(require_membership()),
    db: Session = Depends(get_db),
):
    """
    Cancel a pending invitation.

    Allowed for the issuer, or for a member who outranks the invited role.
    """
    invitation = InvitationService(db).cancel(
        invitation_id,
        caller_id=context.principal_id,
        caller_role=context.role,
        tenant_id=context.tenant.id,
    )
    return _invitation_response(invitation, InvitationStatus.CANCELLED)


@tenant_router.post("/{tenant_id}/invitations/{invitation_id}/resend", response_model=InvitationResponse)
async def resend_invitation(
    invitation_id: int,
    context: TenantContext = Depends(require_membership()),
    db: Session = Depends(get_db),
    notifier: InvitationNotifier = Depends(get_invitation_notifier),
):
    """
    Issue a fresh token for a pending invitation and extend its expiry.

    The previous link stops working.
    """
    issued = InvitationService(db, notifier=notifier).resend(
        invitation_id,
        caller_id=context.principal_id,
        caller_role=context.role,
        tenant_id=context.tenant.id,
    )
    return _invitation_response(issued.invitation, InvitationStatus.PENDING)


@public_router.get("/validate", response_model=InvitationPreviewResponse)
async def validate_invitation(
    token: str = Query(..., min_length=1, max_length=512),
    db: Session = Depends(get_db),
):
    """
    Validate an invitation token (public).

    Unknown, expired and closed invitations all return the same error.
    """
    preview = InvitationService(db).validate(token)
    return {
        "email": preview.email,
        "role": preview.role,
        "tenant_id": preview.tenant_id,
        "tenant_name": preview.tenant_name,
        "expires_at": preview.expires_at,
    }


@public_router.post("/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    payload: InvitationAcceptRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Accept an invitation as the authenticated user.

    Creates or reactivates the membership; a token can be redeemed once.
    """
    membership = InvitationService(db).accept(payload.token, user.id)
    return {
        "tenant_id": membership.tenant_id,
        "membership_id": membership.id,
        "role": membership.role,
    }
