from __future__ import annotations

from fastapi import APIRouter, Depends

from streak_api.auth import require_user_id
from streak_api import repositories
from streak_api.schemas import PreferencePayload

router = APIRouter()


@router.get("/v1/preferences/{key}")
async def get_preference(key: str, user_id: str = Depends(require_user_id)):
    value = await repositories.get_preference(user_id, key)
    return {"key": key, "value": value}


@router.put("/v1/preferences/{key}")
async def set_preference(key: str, payload: PreferencePayload, user_id: str = Depends(require_user_id)):
    await repositories.set_preference(user_id, key, payload.value)
    return {"ok": True}
