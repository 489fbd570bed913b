"""
Group chat messages. Every new message is published on the realtime channel
and copied into the group's last_message snapshot for list views.
"""
import logging
from typing import Dict, List, Optional

from app.core.exceptions import ValidationError
from app.database.gateway import Filter, Gateway, Order, RecordKind
from app.modules.messages.schemas import MessageResponse
from app.modules.polls.schemas import PollResponse
from app.modules.realtime.channel import RealtimeChannel
from app.modules.realtime.events import ChangeEvent, EventKind, EventOp

logger = logging.getLogger(__name__)

PLANBOT_SENDER_ID = "planbot"
PLANBOT_SENDER_NAME = "PlanBot"


class MessageService:
    def __init__(self, gateway: Gateway, channel: RealtimeChannel):
        self.gateway = gateway
        self.channel = channel

    async def _store(self, fields: Dict) -> MessageResponse:
        record = await self.gateway.create(RecordKind.MESSAGES, {
            "sender_avatar": "",
            "poll_id": None,
            "is_system_message": False,
            "reactions": [],
            **fields,
        })
        message = MessageResponse(**record)
        self.channel.publish(ChangeEvent(
            kind=EventKind.MESSAGE,
            op=EventOp.CREATE,
            group_id=message.group_id,
            payload=message.model_dump(mode="json"),
        ))
        await self._snapshot(message)
        return message

    async def _snapshot(self, message: MessageResponse) -> None:
        # list views only; the message itself is already stored
        try:
            await self.gateway.update(RecordKind.GROUPS, message.group_id, {
                "last_message": {
                    "text": message.text,
                    "sender_name": message.sender_name,
                    "timestamp": message.created_at.isoformat(),
                },
            })
        except Exception as e:
            logger.warning(f"Could not update last message for group {message.group_id}: {e}")

    async def send_message(self, group_id: str, sender: Dict, text: str, poll_id: Optional[str] = None) -> MessageResponse:
        if not text or not text.strip():
            raise ValidationError("Message text is required")
        return await self._store({
            "group_id": group_id,
            "sender_id": sender["id"],
            "sender_name": sender.get("name") or "",
            "sender_avatar": sender.get("avatar") or "",
            "text": text.strip(),
            "poll_id": poll_id,
        })

    async def send_system_message(self, group_id: str, text: str) -> MessageResponse:
        return await self._store({
            "group_id": group_id,
            "sender_id": PLANBOT_SENDER_ID,
            "sender_name": PLANBOT_SENDER_NAME,
            "text": text,
            "is_system_message": True,
        })

    async def announce_poll(self, group_id: str, sender: Dict, poll: PollResponse) -> MessageResponse:
        """Chat message pointing at a freshly created poll, sent as its creator"""
        return await self.send_message(group_id, sender, f"📊 New poll created: {poll.title}", poll_id=poll.id)

    async def list_messages(self, group_id: str, limit: int = 100) -> List[MessageResponse]:
        """Most recent messages, oldest first"""
        rows = await self.gateway.list(
            RecordKind.MESSAGES,
            [Filter.eq("group_id", group_id)],
            order=Order("created_at", desc=True),
            limit=limit,
        )
        return [MessageResponse(**row) for row in reversed(rows)]

    async def get_message(self, message_id: str) -> MessageResponse:
        record = await self.gateway.get(RecordKind.MESSAGES, message_id)
        return MessageResponse(**record)

    async def toggle_reaction(self, message_id: str, user_id: str, emoji: str) -> MessageResponse:
        """Add the user's emoji reaction, or remove it if already present"""
        if not emoji or not emoji.strip():
            raise ValidationError("Emoji is required")
        message = await self.get_message(message_id)
        reactions = [r.model_dump() for r in message.reactions]
        mine = {"emoji": emoji, "user_id": user_id}
        if mine in reactions:
            reactions.remove(mine)
        else:
            reactions.append(mine)
        record = await self.gateway.update(RecordKind.MESSAGES, message_id, {"reactions": reactions})
        message = MessageResponse(**record)
        self.channel.publish(ChangeEvent(
            kind=EventKind.REACTION,
            op=EventOp.UPDATE,
            group_id=message.group_id,
            payload=message.model_dump(mode="json"),
        ))
        return message
