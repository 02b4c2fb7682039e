from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditEntryResponse(BaseModel):
    id: int
    tenant_id: int | None
    principal_id: int | None
    action: str
    resource_type: str
    resource_id: str | None
    details: dict[str, Any]
    occurred_at: datetime

    model_config = {"from_attributes": True}


class AuditPageResponse(BaseModel):
    entries: list[AuditEntryResponse]
    total: int
    page: int
    page_size: int


class AuditPurgeResponse(BaseModel):
    deleted: int
    retention_days: int
