from fastapi import APIRouter, Depends
from app.core.dependencies import check_group_member, get_channel, get_current_user, get_gateway, require_group_member
from app.database.gateway import Gateway
from app.modules.messages.service import MessageService
from app.modules.polls.schemas import PollCreate, PollResponse
from app.modules.polls.service import PollService
from app.modules.realtime.channel import RealtimeChannel
from typing import List, Dict, Optional

router = APIRouter(tags=["polls"])


def get_poll_service(
    gateway: Gateway = Depends(get_gateway),
    channel: RealtimeChannel = Depends(get_channel)
) -> PollService:
    return PollService(gateway, channel)


def get_message_service(
    gateway: Gateway = Depends(get_gateway),
    channel: RealtimeChannel = Depends(get_channel)
) -> MessageService:
    return MessageService(gateway, channel)


@router.post("/groups/{group_id}/polls", response_model=PollResponse, status_code=201)
async def create_poll(
    group_id: str,
    poll_data: PollCreate,
    user_data: Dict = Depends(require_group_member),
    service: PollService = Depends(get_poll_service),
    messages: MessageService = Depends(get_message_service)
):
    """Create a poll as the group's only active poll and announce it in chat"""
    poll = await service.create_poll(group_id, user_data, poll_data)
    await messages.announce_poll(group_id, user_data, poll)
    return poll


@router.get("/groups/{group_id}/polls", response_model=List[PollResponse])
async def list_polls(
    group_id: str,
    user_data: Dict = Depends(require_group_member),
    service: PollService = Depends(get_poll_service)
):
    """List a group's polls, newest first"""
    return await service.list_group_polls(group_id)


@router.get("/groups/{group_id}/polls/active", response_model=Optional[PollResponse])
async def get_active_poll(
    group_id: str,
    user_data: Dict = Depends(require_group_member),
    service: PollService = Depends(get_poll_service)
):
    """The group's active poll, or null"""
    return await service.get_active_poll(group_id)


@router.get("/polls/{poll_id}", response_model=PollResponse)
async def get_poll(
    poll_id: str,
    user_data: Dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway),
    service: PollService = Depends(get_poll_service)
):
    poll = await service.get_poll(poll_id)
    await check_group_member(poll.group_id, user_data, gateway)
    return poll


@router.post("/polls/{poll_id}/activate", response_model=PollResponse)
async def activate_poll(
    poll_id: str,
    user_data: Dict = Depends(get_current_user),
    service: PollService = Depends(get_poll_service)
):
    """Make this poll the group's active one (creator only)"""
    return await service.activate_poll(poll_id, user_data["id"])


@router.post("/polls/{poll_id}/deactivate", response_model=PollResponse)
async def deactivate_poll(
    poll_id: str,
    user_data: Dict = Depends(get_current_user),
    service: PollService = Depends(get_poll_service)
):
    """Deactivate a poll (creator only)"""
    return await service.deactivate_poll(poll_id, user_data["id"])


@router.delete("/polls/{poll_id}", status_code=204)
async def delete_poll(
    poll_id: str,
    user_data: Dict = Depends(get_current_user),
    service: PollService = Depends(get_poll_service)
):
    """Delete a poll and its votes (creator only)"""
    await service.delete_poll(poll_id, user_data["id"])
    return None
