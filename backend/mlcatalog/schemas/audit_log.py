# backend/mlcatalog/schemas/audit_log.py
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from mlcatalog.models.audit_log import AuditAction


class AuditLogResponse(BaseModel):
    id: str
    action: AuditAction
    resource_type: str
    resource_id: str
    actor: Optional[str] = None
    metadata_json: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogsResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
