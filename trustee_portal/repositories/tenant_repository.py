"""Repository for Tenant model operations."""

from sqlalchemy.orm import Session
from trustee_portal.models.tenant import Tenant


class TenantRepository:
    """Repository for Tenant model operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, tenant_id: int) -> Tenant | None:
        """
        Get tenant by ID.

        Args:
            tenant_id: Tenant ID

        Returns:
            Tenant object or None if not found
        """
        return self.db.get(Tenant, tenant_id)

    def add(self, tenant: Tenant) -> Tenant:
        """
        Stage a new tenant and flush to populate its ID.

        Raises:
            IntegrityError: If the slug is already taken
        """
        self.db.add(tenant)
        self.db.flush()
        return tenant
