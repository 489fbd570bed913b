from pydantic import BaseModel
from typing import Optional
from datetime import datetime


PLAN_CONFIRMATION = "plan_confirmation"


class NotificationMetadata(BaseModel):
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    poll_id: Optional[str] = None
    place: Optional[str] = None
    address: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    attendees: Optional[int] = None


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    text: str
    metadata: Optional[NotificationMetadata] = None
    read: bool = False
    type: str = PLAN_CONFIRMATION
    created_at: datetime

    class Config:
        from_attributes = True


class MarkAllReadResponse(BaseModel):
    updated: int
