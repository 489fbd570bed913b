from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class GroupCreate(BaseModel):
    name: str


class GroupJoin(BaseModel):
    invite_code: str


class LastMessage(BaseModel):
    text: str = ""
    sender_name: str = ""
    timestamp: Optional[datetime] = None


class GroupResponse(BaseModel):
    id: str
    name: str
    creator_id: str
    members: List[str] = Field(default_factory=list)
    invite_code: Optional[str] = None
    last_message: Optional[LastMessage] = None
    created_at: datetime

    class Config:
        from_attributes = True
