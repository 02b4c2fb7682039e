"""Invitation model: single-use, time-bounded credential to join a tenant."""

from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, Date, DateTime, Enum, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from trustee_portal.core.clock import ensure_utc, utcnow
from trustee_portal.models.base import Base
from trustee_portal.models.role import Role

OPEN_INVITATION_CLAUSE = "accepted_at IS NULL AND cancelled_at IS NULL"


class InvitationStatus(str, PyEnum):
    """Derived status; only accepted_at / cancelled_at are stored."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Invitation(Base):
    """
    Pending invitation to join a tenant.

    Business Rules:
    - Only the SHA-256 hash of the token is stored; the plaintext token is
      handed to the delivery channel once and then forgotten
    - Expires after INVITATION_EXPIRE_DAYS (7 by default)
    - Accepted at most once; accepted_at and cancelled_at are never both set
    - Resend rotates token_hash and extends expires_at on the same row
    - At most one open (neither accepted nor cancelled) row per (tenant, email);
      an expired open row is closed before a new one is issued
    """

    __tablename__ = "invitations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    issued_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Copied onto the membership at acceptance
    term_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    term_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "accepted_at IS NULL OR cancelled_at IS NULL",
            name="ck_invitation_single_terminal_state",
        ),
        Index("ix_invitations_tenant_email", "tenant_id", "email"),
        Index(
            "uq_invitations_open_tenant_email",
            "tenant_id",
            "email",
            unique=True,
            sqlite_where=text(OPEN_INVITATION_CLAUSE),
            postgresql_where=text(OPEN_INVITATION_CLAUSE),
        ),
        Index("ix_invitations_expires_at", "expires_at"),
    )

    def is_expired(self, now: datetime) -> bool:
        """Expired once now reaches expires_at; the boundary instant is expired."""
        return ensure_utc(now) >= ensure_utc(self.expires_at)

    def status_at(self, now: datetime) -> InvitationStatus:
        if self.accepted_at is not None:
            return InvitationStatus.ACCEPTED
        if self.cancelled_at is not None:
            return InvitationStatus.CANCELLED
        if self.is_expired(now):
            return InvitationStatus.EXPIRED
        return InvitationStatus.PENDING

    def is_pending(self, now: datetime) -> bool:
        return self.status_at(now) is InvitationStatus.PENDING

    def __repr__(self) -> str:
        return f"<Invitation(id={self.id}, tenant_id={self.tenant_id}, role={self.role.value})>"
