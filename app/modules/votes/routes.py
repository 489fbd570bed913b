from fastapi import APIRouter, Depends
from app.core.dependencies import check_group_member, get_channel, get_current_user, get_gateway
from app.database.gateway import Gateway, RecordKind
from app.modules.realtime.channel import RealtimeChannel
from app.modules.votes.schemas import VoteCast, VoteResponse, VoteTally
from app.modules.votes.service import VoteService
from typing import List, Dict

router = APIRouter(prefix="/polls/{poll_id}", tags=["votes"])


def get_vote_service(
    gateway: Gateway = Depends(get_gateway),
    channel: RealtimeChannel = Depends(get_channel)
) -> VoteService:
    return VoteService(gateway, channel)


async def require_poll_member(
    poll_id: str,
    user_data: Dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway)
) -> Dict:
    """Caller must belong to the poll's group"""
    poll = await gateway.get(RecordKind.POLLS, poll_id)
    await check_group_member(poll["group_id"], user_data, gateway)
    return user_data


@router.post("/votes", response_model=VoteResponse)
async def cast_vote(
    poll_id: str,
    vote_data: VoteCast,
    user_data: Dict = Depends(require_poll_member),
    service: VoteService = Depends(get_vote_service)
):
    """Cast or change the caller's vote"""
    return await service.cast_vote(poll_id, user_data["id"], vote_data.choice)


@router.get("/votes", response_model=List[VoteResponse])
async def list_votes(
    poll_id: str,
    user_data: Dict = Depends(require_poll_member),
    service: VoteService = Depends(get_vote_service)
):
    return await service.votes_of(poll_id)


@router.get("/tally", response_model=VoteTally)
async def get_tally(
    poll_id: str,
    user_data: Dict = Depends(require_poll_member),
    service: VoteService = Depends(get_vote_service)
):
    """Join/maybe/no counts for a poll"""
    return await service.tally(poll_id)
