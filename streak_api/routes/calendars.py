from __future__ import annotations

from fastapi import APIRouter, Depends

from streak_api.auth import require_user_id
from streak_api import repositories
from streak_api.schemas import CalendarCreate, CalendarPatch, CalendarResponse

router = APIRouter()


@router.get("/v1/calendars")
async def list_calendars(user_id: str = Depends(require_user_id)):
    return {"items": await repositories.list_calendars(user_id)}


@router.post("/v1/calendars", response_model=CalendarResponse)
async def create_calendar(payload: CalendarCreate, user_id: str = Depends(require_user_id)):
    return await repositories.create_calendar(user_id, payload.name, payload.color_theme, payload.position)


@router.get("/v1/calendars/{calendar_id}", response_model=CalendarResponse)
async def get_calendar(calendar_id: str, user_id: str = Depends(require_user_id)):
    return await repositories.get_calendar(user_id, calendar_id)


@router.patch("/v1/calendars/{calendar_id}", response_model=CalendarResponse)
async def update_calendar(calendar_id: str, payload: CalendarPatch, user_id: str = Depends(require_user_id)):
    return await repositories.update_calendar(user_id, calendar_id, payload.model_dump(exclude_unset=True))


@router.delete("/v1/calendars/{calendar_id}")
async def delete_calendar(calendar_id: str, user_id: str = Depends(require_user_id)):
    await repositories.remove_calendar(user_id, calendar_id)
    return {"ok": True}
