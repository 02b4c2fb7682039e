"""Append-only audit trail entries."""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from trustee_portal.core.clock import utcnow
from trustee_portal.models.base import Base


class AuditAction(str, PyEnum):
    TENANT_CREATE = "tenant.create"
    OWNERSHIP_TRANSFER = "tenant.ownership_transfer"
    MEMBER_CREATE = "member.create"
    MEMBER_ROLE_CHANGE = "member.role_change"
    MEMBER_REMOVE = "member.remove"
    MEMBER_REACTIVATE = "member.reactivate"
    INVITATION_ISSUE = "invitation.issue"
    INVITATION_ACCEPT = "invitation.accept"
    INVITATION_CANCEL = "invitation.cancel"
    INVITATION_RESEND = "invitation.resend"
    ACCESS_DENIED = "access.denied"
    AUDIT_PURGE = "audit.purge"


# Written inside the caller's transaction; a failed write fails the action
SYNCHRONOUS_ACTIONS: frozenset[AuditAction] = frozenset(
    {
        AuditAction.MEMBER_ROLE_CHANGE,
        AuditAction.OWNERSHIP_TRANSFER,
        AuditAction.INVITATION_ISSUE,
        AuditAction.INVITATION_ACCEPT,
        AuditAction.MEMBER_REMOVE,
        AuditAction.AUDIT_PURGE,
    }
)


class ResourceType(str, PyEnum):
    TENANT = "tenant"
    MEMBERSHIP = "membership"
    INVITATION = "invitation"
    AUDIT_LOG = "audit_log"


class AuditEntry(Base):
    """
    One privilege-relevant event.

    tenant_id and principal_id are plain columns rather than foreign keys so
    deleting a tenant or user never rewrites history.
    """

    __tablename__ = "audit_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    principal_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    __table_args__ = (
        Index("ix_audit_entries_resource", "resource_type", "resource_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditEntry(id={self.id}, action='{self.action}', tenant_id={self.tenant_id})>"
