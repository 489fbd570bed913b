from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    MESSAGE = "message"
    POLL = "poll"
    VOTE = "vote"
    REACTION = "reaction"
    NOTIFICATION = "notification"


class EventOp(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """One mutation, as pushed to subscribers.

    Group events carry group_id; personal notification events carry user_id
    and are routed to that user's topic instead.
    """
    kind: EventKind
    op: EventOp
    group_id: Optional[str] = None
    user_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def topic(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        return f"group:{self.group_id}"

    def to_frame(self) -> Dict[str, Any]:
        return {"type": "event", **self.model_dump(mode="json")}
