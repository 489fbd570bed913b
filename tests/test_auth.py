from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from app.modules.auth.service import AuthService


def supabase_with(get_user):
    supabase = MagicMock()
    supabase.auth.get_user = get_user
    return supabase


async def test_resolves_user_and_caches_by_token():
    user = SimpleNamespace(
        id="user-dana", email="dana@example.com", user_metadata={"full_name": "Dana K", "avatar_url": "a.png"}
    )
    get_user = AsyncMock(return_value=SimpleNamespace(user=user))
    service = AuthService(supabase_with(get_user))

    first = await service.get_current_user("token-dana-cache")
    second = await service.get_current_user("token-dana-cache")

    assert first == {"id": "user-dana", "email": "dana@example.com", "name": "Dana K", "avatar": "a.png"}
    assert second == first
    get_user.assert_awaited_once_with(jwt="token-dana-cache")


async def test_display_name_falls_back_to_email_prefix():
    user = SimpleNamespace(id="user-eve", email="eve.h@example.com", user_metadata=None)
    service = AuthService(supabase_with(AsyncMock(return_value=SimpleNamespace(user=user))))

    assert (await service.get_current_user("token-eve"))["name"] == "eve.h"


async def test_unverifiable_token_is_401():
    service = AuthService(supabase_with(AsyncMock(side_effect=Exception("invalid JWT: token is expired"))))
    with pytest.raises(HTTPException) as excinfo:
        await service.get_current_user("token-stale")
    assert excinfo.value.status_code == 401

    service = AuthService(supabase_with(AsyncMock(return_value=SimpleNamespace(user=None))))
    with pytest.raises(HTTPException) as excinfo:
        await service.get_current_user("token-nobody")
    assert excinfo.value.status_code == 401
