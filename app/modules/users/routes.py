from fastapi import APIRouter, Depends
from app.core.dependencies import get_current_user, get_gateway
from app.database.gateway import Gateway
from app.modules.users.schemas import UserUpdate, UserResponse
from app.modules.users.service import UserService
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(gateway: Gateway = Depends(get_gateway)) -> UserService:
    return UserService(gateway)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Get the caller's profile"""
    return await service.get_or_default_profile(user_data)


@router.put("/me", response_model=UserResponse)
async def update_me(
    user_update: UserUpdate,
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Update the caller's profile, including favorite genres for /planmovies"""
    return await service.update_profile(user_data, user_update)
