from datetime import date, datetime

from pydantic import BaseModel, Field
from trustee_portal.models.role import Role


class TenantCreate(BaseModel):
    """Create a new organization; the caller becomes its OWNER"""

    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=2, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class TenantResponse(BaseModel):
    """Tenant details response"""

    id: int
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserTenantResponse(TenantResponse):
    """A tenant the caller belongs to, with their role there"""

    role: Role
    membership_id: int


class TenantMemberResponse(BaseModel):
    """Tenant member details with user info"""

    id: int
    user_id: int
    auth_user_id: str
    email: str | None
    role: Role
    is_active: bool
    joined_at: datetime
    term_start: date | None = None
    term_end: date | None = None


class TenantRoleUpdate(BaseModel):
    """Assign a new role to a member"""

    role: Role = Field(..., description="New role to assign")


class OwnershipTransferRequest(BaseModel):
    """Hand the OWNER role to another active member"""

    membership_id: int = Field(..., ge=1)


class TenantMemberRemoveResponse(BaseModel):
    """Response after removing member"""

    message: str
    membership_id: int
