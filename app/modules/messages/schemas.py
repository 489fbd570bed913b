from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class Reaction(BaseModel):
    emoji: str
    user_id: str


class MessageCreate(BaseModel):
    text: str


class ReactionToggle(BaseModel):
    emoji: str


class MessageResponse(BaseModel):
    id: str
    group_id: str
    sender_id: str
    sender_name: str
    sender_avatar: Optional[str] = ""
    text: str
    poll_id: Optional[str] = None
    is_system_message: bool = False
    reactions: List[Reaction] = Field(default_factory=list)
    created_at: datetime

    class Config:
        from_attributes = True


class PostMessageResponse(BaseModel):
    """Result of posting chat text: either a stored message or a handled PlanBot command"""
    handled_as_command: bool
    message: Optional[MessageResponse] = None
