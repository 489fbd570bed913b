from fastapi import APIRouter, Depends
from app.core.dependencies import get_command_serializer, get_current_user, get_gateway, get_planbot, require_group_member
from app.database.gateway import Gateway
from app.modules.groups.schemas import GroupCreate, GroupJoin, GroupResponse
from app.modules.groups.service import GroupService
from app.modules.planbot.interpreter import PlanBot
from app.modules.planbot.serializer import CommandSerializer
from typing import List, Dict

router = APIRouter(prefix="/groups", tags=["groups"])


def get_group_service(gateway: Gateway = Depends(get_gateway)) -> GroupService:
    return GroupService(gateway)


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    group_data: GroupCreate,
    user_data: Dict = Depends(get_current_user),
    service: GroupService = Depends(get_group_service)
):
    """Create a new group with the caller as creator and sole member"""
    return await service.create_group(group_data, user_data["id"])


@router.get("", response_model=List[GroupResponse])
async def list_groups(
    user_data: Dict = Depends(get_current_user),
    service: GroupService = Depends(get_group_service)
):
    """List groups the caller is a member of"""
    return await service.list_groups_for_user(user_data["id"])


@router.post("/join", response_model=GroupResponse)
async def join_group(
    join_data: GroupJoin,
    user_data: Dict = Depends(get_current_user),
    service: GroupService = Depends(get_group_service)
):
    """Join a group by invite code"""
    return await service.join_by_invite(join_data.invite_code, user_data["id"])


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    user_data: Dict = Depends(require_group_member),
    service: GroupService = Depends(get_group_service)
):
    """Get group by ID (only if user is a member)"""
    return await service.get_group(group_id)


@router.post("/{group_id}/leave", response_model=GroupResponse)
async def leave_group(
    group_id: str,
    user_data: Dict = Depends(require_group_member),
    service: GroupService = Depends(get_group_service)
):
    """Leave a group (not allowed for its creator)"""
    return await service.leave_group(group_id, user_data["id"])


@router.delete("/{group_id}", status_code=204)
async def delete_group(
    group_id: str,
    user_data: Dict = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
    planbot: PlanBot = Depends(get_planbot),
    serializer: CommandSerializer = Depends(get_command_serializer)
):
    """Delete group and everything in it (creator only)"""
    await service.delete_group(group_id, user_data["id"])
    planbot.forget_group(group_id)
    serializer.forget(group_id)
    return None
