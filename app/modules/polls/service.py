"""
Poll lifecycle: create, activate, deactivate, delete, and reading the one
active poll of a group.

A group has at most one active poll. Creation and activation deactivate the
rest before the new poll goes live. Two requests racing each other can still
leave two active rows for a moment; get_active_poll treats the newest as
authoritative and deactivates the others on the spot.
"""
import logging
from typing import Dict, List, Optional

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.gateway import Filter, Gateway, Order, RecordKind
from app.modules.polls.schemas import POLL_CHOICES, PollCreate, PollResponse, PollType
from app.modules.realtime.channel import RealtimeChannel
from app.modules.realtime.events import ChangeEvent, EventKind, EventOp

logger = logging.getLogger(__name__)

POLL_TYPES = {t.value for t in PollType}


class PollService:
    def __init__(self, gateway: Gateway, channel: RealtimeChannel):
        self.gateway = gateway
        self.channel = channel

    def _publish(self, op: EventOp, poll: PollResponse) -> None:
        self.channel.publish(ChangeEvent(
            kind=EventKind.POLL,
            op=op,
            group_id=poll.group_id,
            payload=poll.model_dump(mode="json"),
        ))

    async def _deactivate_active(self, group_id: str, keep_id: Optional[str] = None) -> List[PollResponse]:
        if keep_id is None:
            rows = await self.gateway.update_where(
                RecordKind.POLLS,
                [Filter.eq("group_id", group_id), Filter.eq("active", True)],
                {"active": False},
            )
        else:
            actives = await self.gateway.list(
                RecordKind.POLLS,
                [Filter.eq("group_id", group_id), Filter.eq("active", True)],
            )
            rows = [
                await self.gateway.update(RecordKind.POLLS, row["id"], {"active": False})
                for row in actives
                if row["id"] != keep_id
            ]
        deactivated = [PollResponse(**row) for row in rows]
        for poll in deactivated:
            self._publish(EventOp.UPDATE, poll)
        return deactivated

    async def get_poll(self, poll_id: str) -> PollResponse:
        record = await self.gateway.get(RecordKind.POLLS, poll_id)
        return PollResponse(**record)

    async def _get_owned_poll(self, poll_id: str, requester_id: str, action: str) -> PollResponse:
        poll = await self.get_poll(poll_id)
        if poll.creator_id != requester_id:
            logger.info(f"User {requester_id} denied {action} on poll {poll_id}")
            raise PermissionDeniedError(f"You don't have permission to {action} this poll")
        return poll

    async def create_poll(self, group_id: str, creator: Dict, draft: PollCreate) -> PollResponse:
        """Deactivate every active poll in the group, then insert this one as active.

        Announcing the poll in chat is the caller's job (MessageService.announce_poll).
        """
        if draft.type not in POLL_TYPES:
            raise ValidationError(f"Poll type must be one of: {', '.join(sorted(POLL_TYPES))}")
        if not draft.title or not draft.title.strip():
            raise ValidationError("Poll title is required")

        await self._deactivate_active(group_id)

        record = await self.gateway.create(RecordKind.POLLS, {
            "group_id": group_id,
            "creator_id": creator["id"],
            "creator_name": creator.get("name") or "",
            "type": draft.type,
            "external_id": draft.external_id or "",
            "title": draft.title.strip(),
            "description": draft.description or "",
            "image": draft.image or "",
            "choices": list(POLL_CHOICES),
            "active": True,
            "metadata": draft.metadata.model_dump(mode="json", exclude_none=True),
        })
        poll = PollResponse(**record)
        logger.info(f"Poll {poll.id} ({poll.type}: {poll.title}) is now active in group {group_id}")
        self._publish(EventOp.CREATE, poll)
        return poll

    async def activate_poll(self, poll_id: str, requester_id: str) -> PollResponse:
        poll = await self._get_owned_poll(poll_id, requester_id, "activate")
        await self._deactivate_active(poll.group_id, keep_id=poll.id)
        if poll.active:
            return poll
        record = await self.gateway.update(RecordKind.POLLS, poll.id, {"active": True})
        poll = PollResponse(**record)
        self._publish(EventOp.UPDATE, poll)
        return poll

    async def deactivate_poll(self, poll_id: str, requester_id: str) -> PollResponse:
        await self._get_owned_poll(poll_id, requester_id, "deactivate")
        return await self.close_poll(poll_id)

    async def close_poll(self, poll_id: str) -> PollResponse:
        """Deactivate without an ownership check; PlanBot's lock uses this."""
        record = await self.gateway.update(RecordKind.POLLS, poll_id, {"active": False})
        poll = PollResponse(**record)
        self._publish(EventOp.UPDATE, poll)
        return poll

    async def delete_poll(self, poll_id: str, requester_id: str) -> None:
        """Votes go first: an interrupted delete leaves a vote-less poll, never orphan votes."""
        poll = await self._get_owned_poll(poll_id, requester_id, "delete")
        removed = await self.gateway.delete_where(RecordKind.VOTES, [Filter.eq("poll_id", poll.id)])
        await self.gateway.delete(RecordKind.POLLS, poll.id)
        logger.info(f"Deleted poll {poll.id} and {removed} vote(s)")
        self.channel.publish(ChangeEvent(
            kind=EventKind.POLL,
            op=EventOp.DELETE,
            group_id=poll.group_id,
            payload={"id": poll.id},
        ))

    async def get_active_poll(self, group_id: str) -> Optional[PollResponse]:
        rows = await self.gateway.list(
            RecordKind.POLLS,
            [Filter.eq("group_id", group_id), Filter.eq("active", True)],
            order=Order("created_at", desc=True),
        )
        if not rows:
            return None
        newest = PollResponse(**rows[0])
        if len(rows) > 1:
            logger.warning(
                f"Group {group_id} had {len(rows)} active polls; keeping {newest.id} and deactivating the rest"
            )
            for row in rows[1:]:
                try:
                    stale = await self.gateway.update(RecordKind.POLLS, row["id"], {"active": False})
                except NotFoundError:
                    continue
                self._publish(EventOp.UPDATE, PollResponse(**stale))
        return newest

    async def list_group_polls(self, group_id: str, limit: int = 100) -> List[PollResponse]:
        rows = await self.gateway.list(
            RecordKind.POLLS,
            [Filter.eq("group_id", group_id)],
            order=Order("created_at", desc=True),
            limit=limit,
        )
        return [PollResponse(**row) for row in rows]
