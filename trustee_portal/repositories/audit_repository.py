"""Repository for AuditEntry reads and appends."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.orm import Query, Session
from trustee_portal.core.clock import ensure_utc
from trustee_portal.models.audit_entry import AuditEntry


@dataclass(frozen=True)
class AuditFilters:
    action: str | None = None
    resource_type: str | None = None
    principal_id: int | None = None
    since: datetime | None = None
    until: datetime | None = None


class AuditRepository:
    """Append-only access to the audit trail. There is no update path."""

    def __init__(self, db: Session):
        self.db = db

    def add(self, entry: AuditEntry) -> AuditEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def _newest_first(self, query: Query) -> Query:
        return query.order_by(AuditEntry.occurred_at.desc(), AuditEntry.id.desc())

    def query_tenant(
        self, tenant_id: int, filters: AuditFilters, offset: int, limit: int
    ) -> tuple[list[AuditEntry], int]:
        """
        Page through a tenant's entries, newest first.

        Returns:
            (entries on this page, total matching entries)
        """
        query = self.db.query(AuditEntry).filter(AuditEntry.tenant_id == tenant_id)
        if filters.action:
            query = query.filter(AuditEntry.action == filters.action)
        if filters.resource_type:
            query = query.filter(AuditEntry.resource_type == filters.resource_type)
        if filters.principal_id is not None:
            query = query.filter(AuditEntry.principal_id == filters.principal_id)
        if filters.since is not None:
            query = query.filter(AuditEntry.occurred_at >= ensure_utc(filters.since))
        if filters.until is not None:
            query = query.filter(AuditEntry.occurred_at <= ensure_utc(filters.until))

        total = query.count()
        entries = self._newest_first(query).offset(offset).limit(limit).all()
        return entries, total

    def resource_history(
        self, resource_type: str, resource_id: str, tenant_id: int | None = None
    ) -> list[AuditEntry]:
        query = self.db.query(AuditEntry).filter(
            AuditEntry.resource_type == resource_type,
            AuditEntry.resource_id == resource_id,
        )
        if tenant_id is not None:
            query = query.filter(AuditEntry.tenant_id == tenant_id)
        return self._newest_first(query).all()

    def principal_activity(self, principal_id: int, limit: int) -> list[AuditEntry]:
        query = self.db.query(AuditEntry).filter(AuditEntry.principal_id == principal_id)
        return self._newest_first(query).limit(limit).all()

    def delete_before(self, cutoff: datetime) -> int:
        """Retention sweep; the only delete path for audit entries."""
        result = self.db.execute(
            delete(AuditEntry)
            .where(AuditEntry.occurred_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
