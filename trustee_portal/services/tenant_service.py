import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trustee_portal.core.clock import Clock, utcnow
from trustee_portal.core.exceptions import AlreadyMemberException, SlugTakenException
from trustee_portal.models.audit_entry import AuditAction, ResourceType
from trustee_portal.models.role import Role
from trustee_portal.models.tenant import Tenant
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.models.user import User
from trustee_portal.repositories.tenant_repository import TenantRepository
from trustee_portal.services.audit_service import AuditService
from trustee_portal.services.membership_service import MembershipService

logger = logging.getLogger(__name__)


class TenantService:
    """Service layer for tenant management business logic"""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.tenant_repo = TenantRepository(db)
        self.memberships = MembershipService(db, clock=clock)
        self.audit = AuditService(db, clock=clock)

    def create_tenant(self, name: str, slug: str, creator: User) -> tuple[Tenant, TenantMembership]:
        """
        Create a tenant with its creator as OWNER.

        Args:
            name: Display name
            slug: URL identifier, unique across tenants
            creator: Authenticated user creating the tenant

        Returns:
            (tenant, owner membership)

        Raises:
            SlugTakenException: If the slug is already in use
        """
        slug = slug.strip().lower()
        try:
            tenant = self.tenant_repo.add(Tenant(name=name.strip(), slug=slug))
            membership = self.memberships.create(tenant.id, creator.id, Role.OWNER)
            self.db.commit()
        except IntegrityError:
            # Unique constraint on slug settles concurrent creators
            self.db.rollback()
            raise SlugTakenException()
        except AlreadyMemberException:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.db.refresh(tenant)
        self.db.refresh(membership)
        logger.info("Tenant %s (%s) created by principal %s", tenant.id, slug, creator.id)

        self.audit.record(
            AuditAction.TENANT_CREATE,
            ResourceType.TENANT,
            tenant_id=tenant.id,
            principal_id=creator.id,
            resource_id=tenant.id,
            details={"name": tenant.name, "slug": tenant.slug, "ownerMembershipId": membership.id},
        )
        return tenant, membership

    def list_user_tenants(self, user: User) -> list[dict]:
        """
        List all tenants that a user actively belongs to.

        Args:
            user: Authenticated user

        Returns:
            List of tenants with user's role in each tenant
        """
        result = []
        for membership in self.memberships.list_principal_memberships(user.id):
            tenant = membership.tenant
            result.append(
                {
                    "id": tenant.id,
                    "name": tenant.name,
                    "slug": tenant.slug,
                    "role": membership.role,
                    "membership_id": membership.id,
                    "created_at": tenant.created_at,
                    "updated_at": tenant.updated_at,
                }
            )
        return result
