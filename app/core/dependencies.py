"""
Core dependencies: bearer authentication, shared state lookup and group membership checks
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.database.gateway import Gateway, RecordKind
from app.modules.auth.service import AuthService
from app.modules.planbot.interpreter import PlanBot
from app.modules.planbot.serializer import CommandSerializer
from app.modules.realtime.channel import RealtimeChannel
from typing import Dict
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def get_channel(request: Request) -> RealtimeChannel:
    return request.app.state.channel


def get_planbot(request: Request) -> PlanBot:
    return request.app.state.planbot


def get_command_serializer(request: Request) -> CommandSerializer:
    return request.app.state.command_serializer


def get_auth_service(request: Request) -> AuthService:
    auth_service = getattr(request.app.state, "auth_service", None)
    if auth_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured"
        )
    return auth_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict:
    """Extract current user info from JWT token"""
    return await auth_service.get_current_user(credentials.credentials)


async def check_group_member(group_id: str, user_data: Dict, gateway: Gateway) -> Dict:
    """Return the group record if the user belongs to it, else 403. Missing groups surface as 404."""
    group = await gateway.get(RecordKind.GROUPS, group_id)
    if user_data["id"] not in (group.get("members") or []):
        logger.info(f"User {user_data['id']} is not a member of group {group_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You must be a member of this group"
        )
    return group


async def require_group_member(
    group_id: str,
    user_data: Dict = Depends(get_current_user),
    gateway: Gateway = Depends(get_gateway)
) -> Dict:
    """Dependency form of check_group_member for routes with a {group_id} path parameter"""
    await check_group_member(group_id, user_data, gateway)
    return user_data
