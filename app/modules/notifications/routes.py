from fastapi import APIRouter, Depends
from app.core.dependencies import get_channel, get_current_user, get_gateway
from app.database.gateway import Gateway
from app.modules.notifications.schemas import MarkAllReadResponse, NotificationResponse
from app.modules.notifications.service import NotificationService
from app.modules.realtime.channel import RealtimeChannel
from typing import List, Dict

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(
    gateway: Gateway = Depends(get_gateway),
    channel: RealtimeChannel = Depends(get_channel)
) -> NotificationService:
    return NotificationService(gateway, channel)


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = 50,
    user_data: Dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    """List the caller's notifications, newest first"""
    return await service.list_for_user(user_data["id"], limit=min(max(limit, 1), 100))


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user_data: Dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    """Mark every unread notification of the caller as read"""
    return MarkAllReadResponse(updated=await service.mark_all_read(user_data["id"]))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    user_data: Dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return await service.mark_read(notification_id, user_data["id"])
