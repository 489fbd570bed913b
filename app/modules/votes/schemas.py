from pydantic import BaseModel
from datetime import datetime


class VoteCast(BaseModel):
    choice: str


class VoteResponse(BaseModel):
    id: str
    poll_id: str
    user_id: str
    choice: str
    created_at: datetime

    class Config:
        from_attributes = True


class VoteTally(BaseModel):
    join: int = 0
    maybe: int = 0
    no: int = 0

    @property
    def total(self) -> int:
        return self.join + self.maybe + self.no
