from fastapi import APIRouter, Depends
from app.core.dependencies import (
    check_group_member, get_channel, get_command_serializer, get_current_user,
    get_gateway, get_planbot, require_group_member
)
from app.database.gateway import Gateway, RecordKind
from app.modules.messages.schemas import MessageCreate, MessageResponse, PostMessageResponse, ReactionToggle
from app.modules.messages.service import MessageService
from app.modules.planbot.interpreter import PlanBot
from app.modules.planbot.schemas import CommandContext, CurrentUser, GroupInfo
from app.modules.planbot.serializer import CommandSerializer
from app.modules.realtime.channel import RealtimeChannel
from typing import List, Dict

router = APIRouter(tags=["messages"])


def get_message_service(
    gateway: Gateway = Depends(get_gateway),
    channel: RealtimeChannel = Depends(get_channel)
) -> MessageService:
    return MessageService(gateway, channel)


@router.get("/groups/{group_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    group_id: str,
    limit: int = 100,
    user_data: Dict = Depends(require_group_member),
    service: MessageService = Depends(get_message_service)
):
    """List the latest messages of a group in chronological order"""
    return await service.list_messages(group_id, limit=min(max(limit, 1), 500))


@router.post("/groups/{group_id}/messages", response_model=PostMessageResponse, status_code=201)
async def post_message(
    group_id: str,
    message_data: MessageCreate,
    user_data: Dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
    planbot: PlanBot = Depends(get_planbot),
    serializer: CommandSerializer = Depends(get_command_serializer),
    service: MessageService = Depends(get_message_service)
):
    """Post chat text. PlanBot commands are run instead of stored; anything else becomes a message."""
    group = await check_group_member(group_id, user_data, gateway)
    if planbot.is_command(message_data.text):
        context = CommandContext(
            group_id=group_id,
            current_user=CurrentUser(id=user_data["id"], name=user_data.get("name") or "", avatar=user_data.get("avatar") or ""),
            group=GroupInfo(id=group["id"], name=group.get("name") or "", members=group.get("members") or []),
        )
        async with serializer.serialized(group_id):
            result = await planbot.handle_command(message_data.text, context)
        if result.handled:
            return PostMessageResponse(handled_as_command=True)
    message = await service.send_message(group_id, user_data, message_data.text)
    return PostMessageResponse(handled_as_command=False, message=message)


@router.post("/messages/{message_id}/reactions", response_model=MessageResponse)
async def toggle_reaction(
    message_id: str,
    reaction: ReactionToggle,
    user_data: Dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
    service: MessageService = Depends(get_message_service)
):
    """Add or remove the caller's emoji reaction on a message"""
    message = await gateway.get(RecordKind.MESSAGES, message_id)
    await check_group_member(message["group_id"], user_data, gateway)
    return await service.toggle_reaction(message_id, user_data["id"], reaction.emoji)
