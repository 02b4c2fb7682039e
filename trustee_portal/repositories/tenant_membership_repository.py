"""Repository for TenantMembership model operations."""

from sqlalchemy.orm import Session
from trustee_portal.models.role import Role
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.models.user import User


class TenantMembershipRepository:
    """Repository for TenantMembership model operations.

    Writes only flush; the calling service commits or rolls back.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, membership_id: int) -> TenantMembership | None:
        return self.db.get(TenantMembership, membership_id)

    def get_membership(self, user_id: int, tenant_id: int) -> TenantMembership | None:
        """
        Get membership for a specific user in a specific tenant, active or not.

        Args:
            user_id: User ID
            tenant_id: Tenant ID

        Returns:
            TenantMembership object or None if not found
        """
        return (
            self.db.query(TenantMembership)
            .filter(
                TenantMembership.user_id == user_id,
                TenantMembership.tenant_id == tenant_id,
            )
            .first()
        )

    def get_active_membership(self, user_id: int, tenant_id: int) -> TenantMembership | None:
        return (
            self.db.query(TenantMembership)
            .filter(
                TenantMembership.user_id == user_id,
                TenantMembership.tenant_id == tenant_id,
                TenantMembership.is_active.is_(True),
            )
            .first()
        )

    def get_active_membership_by_email(self, tenant_id: int, email: str) -> TenantMembership | None:
        """
        Get the active membership held by the user with this email, if any.

        Args:
            tenant_id: Tenant ID
            email: Lower-cased email address

        Returns:
            TenantMembership object or None
        """
        return (
            self.db.query(TenantMembership)
            .join(User, User.id == TenantMembership.user_id)
            .filter(
                TenantMembership.tenant_id == tenant_id,
                TenantMembership.is_active.is_(True),
                User.email == email,
            )
            .first()
        )

    def get_tenant_members(self, tenant_id: int, include_inactive: bool = False) -> list[TenantMembership]:
        """
        Get memberships for a tenant.

        Args:
            tenant_id: Tenant ID
            include_inactive: Also return soft-removed memberships

        Returns:
            List of TenantMembership objects for the tenant
        """
        query = self.db.query(TenantMembership).filter(TenantMembership.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(TenantMembership.is_active.is_(True))
        return query.order_by(TenantMembership.id).all()

    def get_user_memberships(self, user_id: int) -> list[TenantMembership]:
        """
        Get all active memberships for a user (all tenants they belong to).

        Args:
            user_id: User ID

        Returns:
            List of TenantMembership objects for the user
        """
        return (
            self.db.query(TenantMembership)
            .filter(
                TenantMembership.user_id == user_id,
                TenantMembership.is_active.is_(True),
            )
            .order_by(TenantMembership.id)
            .all()
        )

    def get_active_owners(self, tenant_id: int) -> list[TenantMembership]:
        """
        Get active OWNER memberships for a tenant.

        Args:
            tenant_id: Tenant ID

        Returns:
            List of TenantMembership objects with OWNER role
        """
        return (
            self.db.query(TenantMembership)
            .filter(
                TenantMembership.tenant_id == tenant_id,
                TenantMembership.role == Role.OWNER,
                TenantMembership.is_active.is_(True),
            )
            .all()
        )

    def add(self, membership: TenantMembership) -> TenantMembership:
        """
        Stage a new tenant membership and flush to populate its ID.

        Raises:
            IntegrityError: If (tenant_id, user_id) already exists
        """
        self.db.add(membership)
        self.db.flush()
        return membership

    def flush(self) -> None:
        """
        Push pending changes.

        Raises:
            StaleDataError: If the row's version changed since it was loaded
        """
        self.db.flush()
