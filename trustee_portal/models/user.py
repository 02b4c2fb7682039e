from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import TYPE_CHECKING
from trustee_portal.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from trustee_portal.models.tenant_membership import TenantMembership


class User(Base, TimestampMixin):
    """
    Tracks principals from the external auth service.

    Only stores the 'sub' and 'email' claims - no auth credentials.
    Auto-created on first API request with valid JWT.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auth_user_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    # Lower-cased; used to match invitations against existing members
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True, index=True)

    # Relationships
    memberships: Mapped[list["TenantMembership"]] = relationship(
        "TenantMembership",
        back_populates="user",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, auth_user_id='{self.auth_user_id}')>"
