# app/schemas/notification.py
from pydantic import BaseModel
from typing import Optional, Any, Dict, List
from datetime import datetime


class Notification(BaseModel):
    id: str
    kind: str
    recipient_id: str
    actor_id: Optional[str] = None
    entity_type: str
    entity_id: Optional[str] = None
    event_id: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    dedupe_key: str
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationList(BaseModel):
    data: List[Notification]
    unreadCount: int
