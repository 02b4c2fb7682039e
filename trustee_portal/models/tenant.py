"""Tenant model for multi-tenant isolation."""

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING

from trustee_portal.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from trustee_portal.models.tenant_membership import TenantMembership


class Tenant(Base, TimestampMixin):
    """
    An organization (charity board) and its isolation boundary.

    Memberships, invitations and audit entries all belong to a tenant.
    A principal's role is held per tenant through a TenantMembership.

    The slug is unique at the database level; concurrent creation with the
    same slug is settled by the constraint, not by a read-then-insert check.
    """

    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    # Relationships
    memberships: Mapped[list["TenantMembership"]] = relationship(
        "TenantMembership",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug='{self.slug}')>"
