"""
Invitation issuer.

Invitation lifecycle: Pending -> Accepted | Cancelled (stored), with
Expired derived from expires_at. The plaintext token leaves this module
exactly twice: in the ``IssuedInvitation`` returned to the caller and in
the accept URL handed to the notifier. Only its SHA-256 hash is stored.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trustee_portal.config import settings
from trustee_portal.core.authorization import AuthorizationEngine, authorization_engine
from trustee_portal.core.clock import Clock, ensure_utc, utcnow
from trustee_portal.core.exceptions import (
    AlreadyAcceptedException,
    AlreadyMemberException,
    ConflictException,
    ForbiddenException,
    InvalidInvitationException,
    InvitationPendingException,
    NotFoundException,
    ValidationException,
)
from trustee_portal.core.logging import get_audit_logger
from trustee_portal.core.permissions import ROLE_DISPLAY_NAMES
from trustee_portal.core.security import generate_invitation_token, hash_invitation_token
from trustee_portal.models.audit_entry import AuditAction, ResourceType
from trustee_portal.models.invitation import Invitation, InvitationStatus
from trustee_portal.models.role import Permission, Role
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.repositories.invitation_repository import InvitationRepository
from trustee_portal.repositories.tenant_membership_repository import TenantMembershipRepository
from trustee_portal.repositories.tenant_repository import TenantRepository
from trustee_portal.repositories.user_repository import UserRepository
from trustee_portal.services.audit_service import AuditService
from trustee_portal.services.membership_service import MembershipService
from trustee_portal.services.notification_service import (
    InvitationMessage,
    InvitationNotifier,
    LoggingInvitationNotifier,
)

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


@dataclass(frozen=True)
class IssuedInvitation:
    """Result of issue/resend; the only object that ever holds the plaintext token."""

    invitation: Invitation
    token: str
    accept_url: str


@dataclass(frozen=True)
class InvitationPreview:
    """Redacted view of a pending invitation for the accept page."""

    email: str
    role: Role
    tenant_id: int
    tenant_name: str
    expires_at: datetime


def normalize_email(email: str) -> str:
    return email.strip().lower()


class InvitationService:
    """Service layer for the invitation lifecycle"""

    def __init__(
        self,
        db: Session,
        notifier: InvitationNotifier | None = None,
        engine: AuthorizationEngine = authorization_engine,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.notifier = notifier or LoggingInvitationNotifier()
        self.engine = engine
        self.clock = clock
        self.invitation_repo = InvitationRepository(db)
        self.membership_repo = TenantMembershipRepository(db)
        self.tenant_repo = TenantRepository(db)
        self.user_repo = UserRepository(db)
        self.memberships = MembershipService(db, engine=engine, clock=clock)
        self.audit = AuditService(db, clock=clock)

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    def _expiry_from(self, now: datetime) -> datetime:
        return now + timedelta(days=settings.INVITATION_EXPIRE_DAYS)

    @staticmethod
    def _accept_url(token: str) -> str:
        return f"{settings.invitation_accept_base_url}?{urlencode({'token': token})}"

    def issue(
        self,
        tenant_id: int,
        email: str,
        role: Role,
        *,
        issuer_id: int,
        issuer_role: Role,
        term_start: date | None = None,
        term_end: date | None = None,
    ) -> IssuedInvitation:
        """
        Invite an email address to join a tenant with a role.

        Args:
            tenant_id: Tenant being joined
            email: Recipient address (normalized to lower case)
            role: Role granted on acceptance
            issuer_id: Principal issuing the invitation
            issuer_role: Issuer's effective role in the tenant
            term_start: Optional start of the term of office
            term_end: Optional end of the term of office

        Returns:
            IssuedInvitation carrying the plaintext token, shown only here

        Raises:
            ForbiddenException: If the issuer lacks user:invite or outranks nothing
                at the requested role
            AlreadyMemberException: If the email already holds an active membership
            InvitationPendingException: If a live invitation exists for the email
            NotFoundException: If the tenant does not exist
            ValidationException: If the term dates are inverted
        """
        email = normalize_email(email)
        if term_start and term_end and term_end < term_start:
            raise ValidationException("term_end must not be before term_start")

        if not self.engine.has_permission(issuer_role, Permission.USER_INVITE):
            audit_logger.warning("DENIED invitation issue | tenant=%s | issuer=%s | missing user:invite", tenant_id, issuer_id)
            raise ForbiddenException("Insufficient permissions to invite members")
        if role not in self.engine.invitable_roles(issuer_role):
            audit_logger.warning(
                "DENIED invitation issue | tenant=%s | issuer=%s | role=%s not invitable by %s",
                tenant_id, issuer_id, getattr(role, "value", role), getattr(issuer_role, "value", issuer_role),
            )
            raise ForbiddenException(f"Cannot invite users with role '{getattr(role, 'value', role)}'")

        tenant = self.tenant_repo.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundException("Organization not found")

        # Checked before any token exists
        if self.membership_repo.get_active_membership_by_email(tenant_id, email) is not None:
            raise AlreadyMemberException()

        now = self._now()
        if any(inv.is_pending(now) for inv in self.invitation_repo.get_open_for_email(tenant_id, email)):
            raise InvitationPendingException()

        token = generate_invitation_token()
        invitation = Invitation(
            tenant_id=tenant_id,
            email=email,
            role=role,
            token_hash=hash_invitation_token(token),
            issued_by=issuer_id,
            issued_at=now,
            expires_at=self._expiry_from(now),
            term_start=term_start,
            term_end=term_end,
        )
        try:
            closed = self.invitation_repo.close_expired_open(tenant_id, email, now)
            if closed:
                logger.debug("Closed %d expired invitation(s) for tenant %s before reissue", closed, tenant_id)
            self.invitation_repo.add(invitation)
            self.audit.record(
                AuditAction.INVITATION_ISSUE,
                ResourceType.INVITATION,
                tenant_id=tenant_id,
                principal_id=issuer_id,
                resource_id=invitation.id,
                details={"email": email, "role": role.value},
            )
            self.db.commit()
        except IntegrityError:
            # A concurrent issue for the same address won the open-invitation index
            self.db.rollback()
            raise InvitationPendingException()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(invitation)
        logger.info("Invitation %s issued for tenant %s by principal %s", invitation.id, tenant_id, issuer_id)
        issued = IssuedInvitation(invitation=invitation, token=token, accept_url=self._accept_url(token))
        self._deliver(issued, tenant.name)
        return issued

    def _find_by_token(self, token: str) -> Invitation | None:
        token = (token or "").strip()
        if not token:
            return None
        return self.invitation_repo.get_by_token_hash(hash_invitation_token(token))

    def validate(self, token: str) -> InvitationPreview:
        """
        Look up a pending invitation by its plaintext token.

        Raises:
            InvalidInvitationException: On hash miss, expiry, or a terminal
                state; all three share one message
        """
        invitation = self._find_by_token(token)
        now = self._now()
        if invitation is None or not invitation.is_pending(now):
            logger.debug(
                "Invitation validation failed: %s",
                "unknown token" if invitation is None else invitation.status_at(now).value,
            )
            raise InvalidInvitationException()

        tenant = self.tenant_repo.get_by_id(invitation.tenant_id)
        if tenant is None:
            raise InvalidInvitationException()

        return InvitationPreview(
            email=invitation.email,
            role=invitation.role,
            tenant_id=invitation.tenant_id,
            tenant_name=tenant.name,
            expires_at=ensure_utc(invitation.expires_at),
        )

    def accept(self, token: str, principal_id: int) -> TenantMembership:
        """
        Redeem a token: mark the invitation accepted and create or
        reactivate the principal's membership, in one transaction.

        The Pending -> Accepted transition is a conditional update; of two
        concurrent calls with the same token exactly one succeeds. The
        principal's email must match the invitation's; a principal with no
        email on record takes the invitation's address.

        Returns:
            The active membership

        Raises:
            InvalidInvitationException: Unknown, expired or cancelled token, or
                a principal whose email differs from the invitation's
            AlreadyAcceptedException: The invitation was already redeemed
            AlreadyMemberException: The principal is already an active member
        """
        invitation = self._find_by_token(token)
        now = self._now()
        if invitation is None:
            raise InvalidInvitationException()
        status = invitation.status_at(now)
        if status is InvitationStatus.ACCEPTED:
            raise AlreadyAcceptedException()
        if status is not InvitationStatus.PENDING:
            raise InvalidInvitationException()

        principal = self.user_repo.get_by_id(principal_id)
        if principal is None:
            raise InvalidInvitationException()
        if principal.email and normalize_email(principal.email) != invitation.email:
            audit_logger.warning(
                "DENIED invitation accept | invitation=%s | principal=%s | email mismatch",
                invitation.id, principal_id,
            )
            raise InvalidInvitationException()

        invitation_id = invitation.id
        try:
            if not self.invitation_repo.mark_accepted(invitation_id, principal_id, now):
                self.db.rollback()
                current = self.invitation_repo.get_by_id(invitation_id)
                if current is not None:
                    self.invitation_repo.refresh(current)
                if current is not None and current.accepted_at is not None:
                    raise AlreadyAcceptedException()
                raise InvalidInvitationException()

            if not principal.email:
                # An address already held by another principal cannot be bound
                if self.user_repo.get_by_email(invitation.email) is not None:
                    self.db.rollback()
                    raise InvalidInvitationException()
                principal.email = invitation.email

            membership = self.memberships.create(
                invitation.tenant_id,
                principal_id,
                invitation.role,
                term_start=invitation.term_start,
                term_end=invitation.term_end,
            )
            self.audit.record(
                AuditAction.INVITATION_ACCEPT,
                ResourceType.INVITATION,
                tenant_id=invitation.tenant_id,
                principal_id=principal_id,
                resource_id=invitation_id,
                details={"membershipId": membership.id, "role": invitation.role.value},
            )
            self.db.commit()
        except AlreadyMemberException:
            # create() may already have rolled back after a failed flush
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(membership)
        logger.info("Invitation %s accepted by principal %s", invitation_id, principal_id)
        return membership

    def _get_managed(self, invitation_id: int, tenant_id: int | None, caller_id: int, caller_role: Role) -> Invitation:
        invitation = self.invitation_repo.get_by_id(invitation_id)
        if invitation is None or (tenant_id is not None and invitation.tenant_id != tenant_id):
            raise NotFoundException("Invitation not found")

        if invitation.issued_by != caller_id and not self.engine.can_manage_role(caller_role, invitation.role):
            audit_logger.warning(
                "DENIED invitation change | invitation=%s | caller=%s | not issuer and cannot manage %s",
                invitation.id, caller_id, invitation.role.value,
            )
            raise ForbiddenException("Cannot modify this invitation")

        if invitation.accepted_at is not None:
            raise AlreadyAcceptedException()
        if invitation.cancelled_at is not None:
            raise ConflictException("Invitation has already been cancelled")
        return invitation

    def cancel(
        self,
        invitation_id: int,
        *,
        caller_id: int,
        caller_role: Role,
        tenant_id: int | None = None,
    ) -> Invitation:
        """
        Cancel an open invitation (issuer, or anyone who outranks its role).

        Raises:
            NotFoundException: If the invitation is not in the tenant
            ForbiddenException: If the caller may not manage it
            AlreadyAcceptedException: If it was already accepted
            ConflictException: If it was already cancelled
        """
        invitation = self._get_managed(invitation_id, tenant_id, caller_id, caller_role)

        if not self.invitation_repo.mark_cancelled(invitation.id, self._now()):
            self.db.rollback()
            self.invitation_repo.refresh(invitation)
            if invitation.accepted_at is not None:
                raise AlreadyAcceptedException()
            raise ConflictException("Invitation has already been cancelled")
        self.db.commit()
        self.invitation_repo.refresh(invitation)

        self.audit.record(
            AuditAction.INVITATION_CANCEL,
            ResourceType.INVITATION,
            tenant_id=invitation.tenant_id,
            principal_id=caller_id,
            resource_id=invitation.id,
            details={"email": invitation.email, "role": invitation.role.value},
        )
        return invitation

    def resend(
        self,
        invitation_id: int,
        *,
        caller_id: int,
        caller_role: Role,
        tenant_id: int | None = None,
    ) -> IssuedInvitation:
        """
        Rotate the token of an open invitation and extend its expiry.

        Any previously issued token stops working, delivered or not.

        Raises:
            Same as ``cancel``
        """
        invitation = self._get_managed(invitation_id, tenant_id, caller_id, caller_role)

        now = self._now()
        token = generate_invitation_token()
        if not self.invitation_repo.rotate_token(invitation.id, hash_invitation_token(token), self._expiry_from(now)):
            self.db.rollback()
            self.invitation_repo.refresh(invitation)
            if invitation.accepted_at is not None:
                raise AlreadyAcceptedException()
            raise ConflictException("Invitation has already been cancelled")
        self.db.commit()
        self.invitation_repo.refresh(invitation)

        self.audit.record(
            AuditAction.INVITATION_RESEND,
            ResourceType.INVITATION,
            tenant_id=invitation.tenant_id,
            principal_id=caller_id,
            resource_id=invitation.id,
            details={"email": invitation.email, "expiresAt": ensure_utc(invitation.expires_at).isoformat()},
        )

        issued = IssuedInvitation(invitation=invitation, token=token, accept_url=self._accept_url(token))
        tenant = self.tenant_repo.get_by_id(invitation.tenant_id)
        self._deliver(issued, tenant.name if tenant else "")
        return issued

    def list_invitations(self, tenant_id: int) -> list[tuple[Invitation, InvitationStatus]]:
        """All invitations of a tenant, newest first, with derived status."""
        now = self._now()
        return [(inv, inv.status_at(now)) for inv in self.invitation_repo.list_for_tenant(tenant_id)]

    def _deliver(self, issued: IssuedInvitation, tenant_name: str) -> None:
        invitation = issued.invitation
        message = InvitationMessage(
            recipient=invitation.email,
            accept_url=issued.accept_url,
            role=ROLE_DISPLAY_NAMES.get(invitation.role, invitation.role.value),
            tenant_name=tenant_name,
        )
        try:
            self.notifier.send_invitation(message)
        except Exception:
            # Delivery is not part of the invitation's state; resend can retry
            logger.exception("Invitation %s delivery failed", invitation.id)
