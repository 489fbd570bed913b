from datetime import datetime, timezone
from typing import Dict, List

from app.core.exceptions import NotFoundError
from app.database.gateway import Gateway, RecordKind
from app.modules.users.schemas import UserResponse, UserUpdate


class UserService:
    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    async def get_profile(self, user_id: str) -> UserResponse:
        """Get user profile by ID"""
        record = await self.gateway.get(RecordKind.USER_PROFILES, user_id)
        return UserResponse(**record)

    async def get_or_default_profile(self, user_data: Dict) -> UserResponse:
        """Stored profile, or one built from the token when the user never saved theirs"""
        try:
            return await self.get_profile(user_data["id"])
        except NotFoundError:
            return UserResponse(
                id=user_data["id"],
                email=user_data.get("email"),
                full_name=user_data.get("name"),
                avatar_url=user_data.get("avatar") or None,
            )

    async def get_favorite_genres(self, user_id: str) -> List[str]:
        try:
            profile = await self.get_profile(user_id)
        except NotFoundError:
            return []
        return [g.strip() for g in profile.favorite_genres if g and g.strip()]

    async def update_profile(self, user_data: Dict, user_update: UserUpdate) -> UserResponse:
        """Create or update the caller's profile; unset fields are left alone"""
        update_data = {
            "id": user_data["id"],
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if user_data.get("email"):
            update_data["email"] = user_data["email"]
        if user_update.full_name is not None:
            update_data["full_name"] = user_update.full_name
        if user_update.avatar_url is not None:
            update_data["avatar_url"] = user_update.avatar_url
        if user_update.favorite_genres is not None:
            update_data["favorite_genres"] = [g.strip() for g in user_update.favorite_genres if g.strip()]

        record = await self.gateway.upsert(RecordKind.USER_PROFILES, update_data, conflict=("id",))
        return UserResponse(**record)
