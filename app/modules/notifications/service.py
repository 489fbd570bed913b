import logging
from typing import Iterable, List, Optional

from app.core.exceptions import NotFoundError
from app.database.gateway import Filter, Gateway, Order, RecordKind
from app.modules.notifications.schemas import PLAN_CONFIRMATION, NotificationMetadata, NotificationResponse
from app.modules.realtime.channel import RealtimeChannel
from app.modules.realtime.events import ChangeEvent, EventKind, EventOp

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, gateway: Gateway, channel: RealtimeChannel):
        self.gateway = gateway
        self.channel = channel

    async def notify(
        self,
        user_id: str,
        text: str,
        metadata: Optional[NotificationMetadata] = None,
    ) -> NotificationResponse:
        """Persist an unread notification and push it to the recipient's topic. Raises on failure."""
        record = await self.gateway.create(RecordKind.NOTIFICATIONS, {
            "user_id": user_id,
            "text": text,
            "metadata": metadata.model_dump(mode="json") if metadata else None,
            "read": False,
            "type": PLAN_CONFIRMATION,
        })
        notification = NotificationResponse(**record)
        self.channel.publish(ChangeEvent(
            kind=EventKind.NOTIFICATION,
            op=EventOp.CREATE,
            user_id=user_id,
            payload=notification.model_dump(mode="json"),
        ))
        return notification

    async def notify_many(
        self,
        user_ids: Iterable[str],
        text: str,
        metadata: Optional[NotificationMetadata] = None,
    ) -> int:
        """One attempt per recipient; a failed recipient is logged and skipped. Returns the delivered count."""
        delivered = 0
        for user_id in user_ids:
            try:
                await self.notify(user_id, text, metadata)
                delivered += 1
            except Exception as e:
                logger.error(f"Failed to send notification to {user_id}: {e}")
        return delivered

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[NotificationResponse]:
        rows = await self.gateway.list(
            RecordKind.NOTIFICATIONS,
            [Filter.eq("user_id", user_id)],
            order=Order("created_at", desc=True),
            limit=limit,
        )
        return [NotificationResponse(**row) for row in rows]

    async def mark_read(self, notification_id: str, user_id: str) -> NotificationResponse:
        record = await self.gateway.get(RecordKind.NOTIFICATIONS, notification_id)
        if record["user_id"] != user_id:
            # someone else's notification is reported as missing
            raise NotFoundError("Notification not found")
        record = await self.gateway.update(RecordKind.NOTIFICATIONS, notification_id, {"read": True})
        return NotificationResponse(**record)

    async def mark_all_read(self, user_id: str) -> int:
        rows = await self.gateway.update_where(
            RecordKind.NOTIFICATIONS,
            [Filter.eq("user_id", user_id), Filter.eq("read", False)],
            {"read": True},
        )
        return len(rows)
