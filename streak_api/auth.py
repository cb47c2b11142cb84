from __future__ import annotations

from fastapi import Header

from streak_api.errors import Unauthenticated, Unauthorized
from streak_api.settings import get_settings


async def require_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_backend_token: str | None = Header(default=None, alias="X-Backend-Token"),
) -> str:
    settings = get_settings()
    if not x_backend_token or x_backend_token != settings.backend_session_secret:
        raise Unauthenticated("Invalid backend token")
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise Unauthenticated("Not authenticated")
    if settings.allowed_users and user_id not in settings.allowed_users:
        raise Unauthorized("User not allowed")
    return user_id
