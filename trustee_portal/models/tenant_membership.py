"""Tenant membership model linking users to tenants with roles."""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Integer, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING

from trustee_portal.core.clock import utcnow
from trustee_portal.models.base import Base, TimestampMixin
from trustee_portal.models.role import Role

if TYPE_CHECKING:
    from trustee_portal.models.user import User
    from trustee_portal.models.tenant import Tenant


class TenantMembership(Base, TimestampMixin):
    """
    One principal's standing in one tenant.

    Example memberships:
    - User "Alice" has role OWNER in tenant "Riverside Food Bank"
    - User "Bob" has role TREASURER in tenant "Riverside Food Bank"
    - User "Alice" has role TRUSTEE in tenant "Hillside Hospice" (different tenant)

    Constraints:
    - Unique(tenant_id, user_id) - one membership per user per tenant
    - Removal is soft (is_active=False) so audit entries keep their target
    - version_id guards role changes against concurrent writers
    """

    __tablename__ = "tenant_memberships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=Role.VIEWER,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Term of office for board roles
    term_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    term_end: Mapped[date | None] = mapped_column(Date, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="memberships")
    user: Mapped["User"] = relationship("User", back_populates="memberships")

    # Constraints
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="uq_tenant_user"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<TenantMembership(tenant_id={self.tenant_id}, user_id={self.user_id}, "
            f"role={self.role.value}, active={self.is_active})>"
        )
