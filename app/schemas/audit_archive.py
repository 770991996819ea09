# app/schemas/audit_archive.py
from pydantic import BaseModel
from typing import Optional


class AuditArchiveResult(BaseModel):
    event_id: str
    status: str  # archived, skipped
    reason: Optional[str] = None
    location: Optional[str] = None
    count: int = 0


class AuditArchiveRequestAccepted(BaseModel):
    event_id: str
    task_id: str
