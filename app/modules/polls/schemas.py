from pydantic import AliasChoices, BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


POLL_CHOICES = ("join", "maybe", "no")


class PollType(str, Enum):
    MOVIE = "movie"
    PLACE = "place"


class PollMetadata(BaseModel):
    """Provider-specific details folded into a poll. Older rows used camelCase keys."""
    date: Optional[str] = None
    time: Optional[str] = None
    rating: Optional[float] = None
    release_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("release_date", "releaseDate"))
    types: List[str] = Field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    source: str = "manual"  # manual | planbot


class PollCreate(BaseModel):
    # type is checked by the service so a bad literal surfaces as ValidationError
    type: str
    external_id: str = ""
    title: str
    description: Optional[str] = ""
    image: Optional[str] = ""
    metadata: PollMetadata = Field(default_factory=PollMetadata)


class PollResponse(BaseModel):
    id: str
    group_id: str
    creator_id: str
    creator_name: str
    type: str
    external_id: str = ""
    title: str
    description: Optional[str] = ""
    image: Optional[str] = ""
    choices: List[str] = Field(default_factory=lambda: list(POLL_CHOICES))
    active: bool
    metadata: PollMetadata = Field(default_factory=PollMetadata)
    created_at: datetime

    class Config:
        from_attributes = True
