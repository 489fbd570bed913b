import logging
from typing import List, Optional

from app.core.exceptions import ValidationError
from app.database.gateway import Filter, Gateway, Order, RecordKind
from app.modules.polls.schemas import POLL_CHOICES
from app.modules.realtime.channel import RealtimeChannel
from app.modules.realtime.events import ChangeEvent, EventKind, EventOp
from app.modules.votes.schemas import VoteResponse, VoteTally

logger = logging.getLogger(__name__)


class VoteService:
    def __init__(self, gateway: Gateway, channel: RealtimeChannel):
        self.gateway = gateway
        self.channel = channel

    async def cast_vote(self, poll_id: str, user_id: str, choice: str) -> VoteResponse:
        """Record or overwrite the user's vote on a poll. One row per (poll, user)."""
        if choice not in POLL_CHOICES:
            raise ValidationError(f"Choice must be one of: {', '.join(POLL_CHOICES)}")
        # NotFoundError when the poll is gone
        poll = await self.gateway.get(RecordKind.POLLS, poll_id)

        existing = await self.user_vote(poll_id, user_id)
        record = await self.gateway.upsert(
            RecordKind.VOTES,
            {"poll_id": poll_id, "user_id": user_id, "choice": choice},
            conflict=("poll_id", "user_id"),
        )
        vote = VoteResponse(**record)
        op = EventOp.CREATE if existing is None else EventOp.UPDATE
        logger.debug(f"Vote {op.value} on poll {poll_id} by {user_id}: {choice}")
        self.channel.publish(ChangeEvent(
            kind=EventKind.VOTE,
            op=op,
            group_id=poll["group_id"],
            payload=vote.model_dump(mode="json"),
        ))
        return vote

    async def votes_of(self, poll_id: str) -> List[VoteResponse]:
        rows = await self.gateway.list(
            RecordKind.VOTES,
            [Filter.eq("poll_id", poll_id)],
            order=Order("created_at"),
        )
        return [VoteResponse(**row) for row in rows]

    async def user_vote(self, poll_id: str, user_id: str) -> Optional[VoteResponse]:
        rows = await self.gateway.list(
            RecordKind.VOTES,
            [Filter.eq("poll_id", poll_id), Filter.eq("user_id", user_id)],
            limit=1,
        )
        return VoteResponse(**rows[0]) if rows else None

    async def tally(self, poll_id: str) -> VoteTally:
        """Count votes per choice; rows holding an unknown choice are skipped."""
        counts = {choice: 0 for choice in POLL_CHOICES}
        for vote in await self.votes_of(poll_id):
            if vote.choice in counts:
                counts[vote.choice] += 1
            else:
                logger.warning(f"Ignoring vote {vote.id} with unknown choice {vote.choice!r}")
        return VoteTally(**counts)
