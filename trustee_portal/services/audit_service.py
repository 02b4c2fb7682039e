"""
Audit recorder.

Two write modes, chosen by action:

- Synchronous actions (see ``SYNCHRONOUS_ACTIONS``) are staged in the
  caller's open transaction. The caller commits them together with the
  mutation they describe, so a failed audit write fails the whole action.
- Every other action is best-effort: written in its own commit after the
  primary change has been committed. Failures are logged and swallowed.
"""

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trustee_portal.config import settings
from trustee_portal.core.clock import Clock, ensure_utc, utcnow
from trustee_portal.core.exceptions import ForbiddenException, ValidationException
from trustee_portal.core.logging import get_audit_logger
from trustee_portal.models.audit_entry import (
    SYNCHRONOUS_ACTIONS,
    AuditAction,
    AuditEntry,
    ResourceType,
)
from trustee_portal.repositories.audit_repository import AuditFilters, AuditRepository

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


@dataclass(frozen=True)
class AuditPage:
    entries: list[AuditEntry]
    total: int
    page: int
    page_size: int


def _jsonable(details: dict[str, Any] | None) -> dict[str, Any]:
    # Enum members and dates must survive the JSON column
    return json.loads(json.dumps(details or {}, default=str))


class AuditService:
    """Append-only audit trail writer and reader"""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.audit_repo = AuditRepository(db)

    def record(
        self,
        action: AuditAction,
        resource_type: ResourceType | str,
        *,
        tenant_id: int | None = None,
        principal_id: int | None = None,
        resource_id: Any = None,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry | None:
        """
        Append an audit entry.

        Synchronous actions are flushed into the current transaction and any
        error propagates; the caller must commit. Other actions must be
        recorded after the caller's commit: they are committed here and
        failures are only logged.

        Returns:
            The stored entry, or None if a best-effort write failed
        """
        entry = AuditEntry(
            tenant_id=tenant_id,
            principal_id=principal_id,
            action=AuditAction(action).value,
            resource_type=ResourceType(resource_type).value,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=_jsonable(details),
            occurred_at=ensure_utc(self.clock()),
        )

        if action in SYNCHRONOUS_ACTIONS:
            self.audit_repo.add(entry)
            self._log(entry)
            return entry

        try:
            self.audit_repo.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Best-effort audit write failed: action=%s tenant_id=%s resource=%s/%s",
                entry.action,
                tenant_id,
                entry.resource_type,
                entry.resource_id,
            )
            return None
        self._log(entry)
        return entry

    @staticmethod
    def _log(entry: AuditEntry) -> None:
        audit_logger.info(
            "AUDIT | %s | tenant=%s | principal=%s | %s/%s",
            entry.action,
            entry.tenant_id,
            entry.principal_id,
            entry.resource_type,
            entry.resource_id,
        )

    def query(
        self,
        tenant_id: int,
        filters: AuditFilters | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> AuditPage:
        """
        Read a tenant's audit trail, newest first.

        Args:
            tenant_id: Tenant to read
            filters: Optional action / resource type / principal / time window
            page: 1-based page number
            page_size: Entries per page, capped at AUDIT_MAX_PAGE_SIZE

        Raises:
            ValidationException: If page or page_size is not positive
        """
        size = page_size or settings.AUDIT_PAGE_SIZE
        if page < 1 or size < 1:
            raise ValidationException("page and page_size must be positive")
        size = min(size, settings.AUDIT_MAX_PAGE_SIZE)

        entries, total = self.audit_repo.query_tenant(
            tenant_id, filters or AuditFilters(), offset=(page - 1) * size, limit=size
        )
        return AuditPage(entries=entries, total=total, page=page, page_size=size)

    def resource_history(
        self, resource_type: ResourceType | str, resource_id: Any, tenant_id: int | None = None
    ) -> list[AuditEntry]:
        """All entries referencing one resource, newest first."""
        return self.audit_repo.resource_history(
            ResourceType(resource_type).value, str(resource_id), tenant_id=tenant_id
        )

    def principal_activity(self, principal_id: int, limit: int = 50) -> list[AuditEntry]:
        return self.audit_repo.principal_activity(principal_id, min(limit, settings.AUDIT_MAX_PAGE_SIZE))

    def purge_older_than(
        self, retention_days: int, *, caller_id: int, caller_is_super_admin: bool
    ) -> int:
        """
        Retention sweep: delete entries older than ``retention_days``.

        Only platform super administrators may run it. The sweep itself is
        recorded in the same transaction.

        Returns:
            Number of entries deleted

        Raises:
            ForbiddenException: If the caller is not a super administrator
            ValidationException: If retention_days is negative
        """
        if not caller_is_super_admin:
            audit_logger.warning("Audit purge denied for principal=%s", caller_id)
            raise ForbiddenException("Only platform administrators may purge the audit trail")
        if retention_days < 0:
            raise ValidationException("retention_days must not be negative")

        cutoff = ensure_utc(self.clock()) - timedelta(days=retention_days)
        try:
            deleted = self.audit_repo.delete_before(cutoff)
            self.record(
                AuditAction.AUDIT_PURGE,
                ResourceType.AUDIT_LOG,
                principal_id=caller_id,
                details={"cutoff": cutoff.isoformat(), "deleted": deleted},
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info("Purged %d audit entries older than %s", deleted, cutoff.isoformat())
        return deleted
