# app/schemas/notification_log.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class NotificationLogOut(BaseModel):
    id: int
    visitor_id: int
    recipient: str
    template_kind: str
    tier: Optional[str]
    delivered: int
    created_at: datetime

    class Config:
        from_attributes = True
