from pydantic import AliasChoices, BaseModel, Field
from typing import Optional, List


class CurrentUser(BaseModel):
    id: str
    name: str = ""
    avatar: Optional[str] = ""


class GroupInfo(BaseModel):
    id: str
    name: str = ""
    members: List[str] = []


class CommandContext(BaseModel):
    """Who ran a command and where. Chat clients send camelCase keys, so both spellings are accepted."""
    group_id: str = Field(validation_alias=AliasChoices("group_id", "groupId"))
    current_user: CurrentUser = Field(validation_alias=AliasChoices("current_user", "currentUser"))
    group: Optional[GroupInfo] = None


class CommandResult(BaseModel):
    handled: bool
