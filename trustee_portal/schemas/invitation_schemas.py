from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, model_validator
from trustee_portal.models.invitation import InvitationStatus
from trustee_portal.models.role import Role


class InvitationCreate(BaseModel):
    """Invite an email address to the organization"""

    email: EmailStr
    role: Role = Field(default=Role.TRUSTEE, description="Role granted on acceptance")
    term_start: date | None = None
    term_end: date | None = None

    @model_validator(mode="after")
    def _term_order(self) -> "InvitationCreate":
        if self.term_start and self.term_end and self.term_end < self.term_start:
            raise ValueError("term_end must not be before term_start")
        return self


class InvitationResponse(BaseModel):
    """Invitation details; never includes the token or its hash"""

    id: int
    tenant_id: int
    email: str
    role: Role
    status: InvitationStatus
    issued_by: int | None
    issued_at: datetime
    expires_at: datetime
    accepted_at: datetime | None = None
    cancelled_at: datetime | None = None


class InvitationPreviewResponse(BaseModel):
    """Redacted preview shown on the accept page"""

    valid: bool = True
    email: str
    role: Role
    tenant_id: int
    tenant_name: str
    expires_at: datetime


class InvitationAcceptRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)


class InvitationAcceptResponse(BaseModel):
    tenant_id: int
    membership_id: int
    role: Role
