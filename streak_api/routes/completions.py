from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from streak_api.auth import require_user_id
from streak_api import repositories
from streak_api.schemas import CompletionsPage

router = APIRouter()


@router.get("/v1/completions", response_model=CompletionsPage)
async def list_completions(
    start: int = Query(...),
    end: int = Query(...),
    habit_id: str | None = Query(None),
    calendar_id: str | None = Query(None),
    cursor: str | None = Query(None),
    limit: int | None = Query(None),
    user_id: str = Depends(require_user_id),
):
    return await repositories.list_completions(
        user_id,
        start,
        end,
        habit_id=habit_id,
        calendar_id=calendar_id,
        cursor=cursor,
        limit=limit,
    )
