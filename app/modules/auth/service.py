import hashlib
import logging
import time
from supabase import AsyncClient
from fastapi import HTTPException
from typing import Dict, Any

logger = logging.getLogger(__name__)

# Short-lived cache so a chat client polling several endpoints with one token
# does not hit Supabase Auth on every request
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500


def _display_name(email: str, user_metadata: Dict[str, Any]) -> str:
    name = user_metadata.get("full_name") or user_metadata.get("name")
    if name:
        return name
    return (email or "").split("@")[0] or "Someone"


class AuthService:
    """Verifies bearer tokens issued by Supabase Auth. Sign-up and login stay with the client SDK."""

    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def get_current_user(self, token: str) -> Dict[str, Any]:
        """Resolve a JWT to {id, email, name, avatar}. Raises 401 on anything unverifiable."""
        try:
            cache_key = hashlib.sha256(token.encode()).hexdigest()
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = await self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            user = user_response.user
            user_metadata = user.user_metadata or {}
            user_data = {
                "id": user.id,
                "email": user.email,
                "name": _display_name(user.email, user_metadata),
                "avatar": user_metadata.get("avatar_url") or "",
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except HTTPException:
            raise
        except Exception as e:
            error_msg = str(e)
            logger.info(f"Token verification failed: {error_msg}")
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise HTTPException(status_code=401, detail="Invalid or expired token")
            raise HTTPException(status_code=401, detail="Authentication failed")
