"""
Membership directory.

Owns the (tenant, principal) -> role binding. Role changes and removals
go through the authorization engine, are audited synchronously, and are
never allowed to target the caller's own membership.
"""

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from trustee_portal.core.authorization import AuthorizationEngine, authorization_engine
from trustee_portal.core.clock import Clock, ensure_utc, utcnow
from trustee_portal.core.exceptions import (
    AlreadyMemberException,
    ConcurrentUpdateException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from trustee_portal.core.logging import get_audit_logger
from trustee_portal.models.audit_entry import AuditAction, ResourceType
from trustee_portal.models.role import Permission, Role
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.repositories.tenant_membership_repository import TenantMembershipRepository
from trustee_portal.services.audit_service import AuditService

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


class MembershipService:
    """Service layer for tenant membership lifecycle"""

    def __init__(
        self,
        db: Session,
        engine: AuthorizationEngine = authorization_engine,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.engine = engine
        self.clock = clock
        self.membership_repo = TenantMembershipRepository(db)
        self.audit = AuditService(db, clock=clock)

    def _get_in_tenant(self, membership_id: int, tenant_id: int | None) -> TenantMembership:
        membership = self.membership_repo.get_by_id(membership_id)
        if membership is None or (tenant_id is not None and membership.tenant_id != tenant_id):
            raise NotFoundException("Member not found in this organization")
        return membership

    def list_members(self, tenant_id: int, include_inactive: bool = False) -> list[TenantMembership]:
        return self.membership_repo.get_tenant_members(tenant_id, include_inactive=include_inactive)

    def list_principal_memberships(self, principal_id: int) -> list[TenantMembership]:
        return self.membership_repo.get_user_memberships(principal_id)

    def create(
        self,
        tenant_id: int,
        principal_id: int,
        role: Role,
        term_start: date | None = None,
        term_end: date | None = None,
    ) -> TenantMembership:
        """
        Stage a new active membership.

        Does not commit; the caller owns the transaction. A previously
        deactivated membership for the same pair is reactivated instead,
        since the pair may only ever have one row.

        Raises:
            AlreadyMemberException: If an active membership already exists
            ValidationException: If role is SUPER_ADMIN
        """
        if role is Role.SUPER_ADMIN:
            raise ValidationException("Super administrator is not a tenant role")

        existing = self.membership_repo.get_membership(principal_id, tenant_id)
        if existing is not None:
            if existing.is_active:
                raise AlreadyMemberException()
            return self.reactivate(existing.id, role=role, term_start=term_start, term_end=term_end)

        membership = TenantMembership(
            tenant_id=tenant_id,
            user_id=principal_id,
            role=role,
            is_active=True,
            joined_at=ensure_utc(self.clock()),
            term_start=term_start,
            term_end=term_end,
        )
        try:
            self.membership_repo.add(membership)
        except IntegrityError:
            # Lost an insert race for the same (tenant, user) pair; the
            # enclosing transaction cannot continue after a failed flush
            self.db.rollback()
            raise AlreadyMemberException()
        return membership

    def reactivate(
        self,
        membership_id: int,
        role: Role | None = None,
        term_start: date | None = None,
        term_end: date | None = None,
    ) -> TenantMembership:
        """
        Re-enable a deactivated membership and refresh joined_at.

        Used by invitation acceptance; does not commit.

        Raises:
            NotFoundException: If the membership does not exist
            AlreadyMemberException: If the membership is already active
        """
        membership = self._get_in_tenant(membership_id, None)
        if membership.is_active:
            raise AlreadyMemberException()

        membership.is_active = True
        membership.joined_at = ensure_utc(self.clock())
        if role is not None:
            membership.role = role
        if term_start is not None or term_end is not None:
            membership.term_start = term_start
            membership.term_end = term_end
        self.membership_repo.flush()
        return membership

    def change_role(
        self,
        membership_id: int,
        proposed_role: Role,
        *,
        changer_id: int,
        changer_role: Role,
        tenant_id: int | None = None,
    ) -> TenantMembership:
        """
        Change a member's role.

        Args:
            membership_id: Target membership
            proposed_role: Role to assign
            changer_id: Principal making the change
            changer_role: Changer's effective role in the tenant
            tenant_id: When given, the target must belong to this tenant

        Returns:
            Updated membership

        Raises:
            NotFoundException: If membership not found in the tenant
            ForbiddenException: If the changer targets themself, lacks
                role:assign, or the transition is not allowed
            ConcurrentUpdateException: If another request changed the row first
        """
        membership = self._get_in_tenant(membership_id, tenant_id)
        if not membership.is_active:
            raise NotFoundException("Member not found in this organization")

        is_self = membership.user_id == changer_id
        if not is_self and not self.engine.has_permission(changer_role, Permission.ROLE_ASSIGN):
            self._deny(membership, changer_id, "role change", "Missing permission role:assign")
            raise ForbiddenException("Insufficient permissions to assign roles")

        decision = self.engine.can_transition_role(
            membership.role, proposed_role, changer_role, is_self=is_self
        )
        if not decision:
            self._deny(membership, changer_id, "role change", decision.reason)
            raise ForbiddenException(decision.reason)

        previous_role = membership.role
        try:
            membership.role = proposed_role
            self.membership_repo.flush()
            self.audit.record(
                AuditAction.MEMBER_ROLE_CHANGE,
                ResourceType.MEMBERSHIP,
                tenant_id=membership.tenant_id,
                principal_id=changer_id,
                resource_id=membership.id,
                details={
                    "targetPrincipalId": membership.user_id,
                    "previousRole": previous_role.value,
                    "newRole": proposed_role.value,
                },
            )
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentUpdateException()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            "Membership %s role changed %s -> %s by principal %s",
            membership.id, previous_role.value, proposed_role.value, changer_id,
        )
        self.db.refresh(membership)
        return membership

    def deactivate(
        self,
        membership_id: int,
        *,
        caller_id: int,
        caller_role: Role,
        tenant_id: int | None = None,
    ) -> TenantMembership:
        """
        Soft-remove a member from a tenant.

        Raises:
            NotFoundException: If membership not found in the tenant
            ForbiddenException: If the caller lacks user:delete, targets
                themself, or does not outrank the target
            ConcurrentUpdateException: If another request changed the row first
        """
        membership = self._get_in_tenant(membership_id, tenant_id)

        if not self.engine.has_permission(caller_role, Permission.USER_DELETE):
            self._deny(membership, caller_id, "removal", "Missing permission user:delete")
            raise ForbiddenException("Insufficient permissions to remove members")
        if membership.user_id == caller_id:
            self._deny(membership, caller_id, "removal", "Self-removal")
            raise ForbiddenException("Cannot remove yourself; transfer ownership first")
        if not self.engine.can_manage_role(caller_role, membership.role):
            self._deny(membership, caller_id, "removal", "Target outranks or equals caller")
            raise ForbiddenException("Cannot remove a member of equal or higher rank")

        if not membership.is_active:
            return membership

        try:
            membership.is_active = False
            self.membership_repo.flush()
            self.audit.record(
                AuditAction.MEMBER_REMOVE,
                ResourceType.MEMBERSHIP,
                tenant_id=membership.tenant_id,
                principal_id=caller_id,
                resource_id=membership.id,
                details={"targetPrincipalId": membership.user_id, "role": membership.role.value},
            )
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentUpdateException()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(membership)
        return membership

    def transfer_ownership(
        self,
        tenant_id: int,
        target_membership_id: int,
        *,
        caller_id: int,
        caller_role: Role,
    ) -> TenantMembership:
        """
        Hand the OWNER role to another active member.

        The caller's own OWNER membership (or, for a super admin, every
        current owner) is demoted to ADMIN in the same transaction.

        Raises:
            ForbiddenException: If the caller is neither owner nor super admin
            NotFoundException: If the target is not in the tenant
            ValidationException: If the target is inactive or is the caller
        """
        if caller_role not in (Role.OWNER, Role.SUPER_ADMIN):
            raise ForbiddenException("Only the owner can transfer ownership")

        target = self._get_in_tenant(target_membership_id, tenant_id)
        if not target.is_active:
            raise ValidationException("Target membership is not active")
        if target.user_id == caller_id:
            raise ValidationException("Cannot transfer ownership to yourself")

        if caller_role is Role.OWNER:
            demoted = [
                m for m in self.membership_repo.get_active_owners(tenant_id) if m.user_id == caller_id
            ]
        else:
            demoted = [m for m in self.membership_repo.get_active_owners(tenant_id) if m.id != target.id]

        previous_role = target.role
        try:
            target.role = Role.OWNER
            for owner in demoted:
                owner.role = Role.ADMIN
            self.membership_repo.flush()
            self.audit.record(
                AuditAction.OWNERSHIP_TRANSFER,
                ResourceType.MEMBERSHIP,
                tenant_id=tenant_id,
                principal_id=caller_id,
                resource_id=target.id,
                details={
                    "targetPrincipalId": target.user_id,
                    "previousRole": previous_role.value,
                    "newRole": Role.OWNER.value,
                    "demotedMembershipIds": [m.id for m in demoted],
                },
            )
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentUpdateException()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(target)
        return target

    def _deny(self, membership: TenantMembership, caller_id: int, operation: str, reason: str | None) -> None:
        audit_logger.warning(
            "DENIED %s | membership=%s | tenant=%s | caller=%s | %s",
            operation, membership.id, membership.tenant_id, caller_id, reason,
        )
