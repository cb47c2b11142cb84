from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from streak_api.auth import require_user_id
from streak_api import repositories
from streak_api.schemas import CompletionCount, CompletionToggle, HabitCreate, HabitPatch, HabitResponse, HabitStatsResponse
from streak_api.services import stats

router = APIRouter()


@router.get("/v1/habits")
async def list_habits(calendar_id: str | None = Query(None), user_id: str = Depends(require_user_id)):
    return {"items": await repositories.list_habits(user_id, calendar_id)}


@router.post("/v1/habits", response_model=HabitResponse)
async def create_habit(payload: HabitCreate, user_id: str = Depends(require_user_id)):
    return await repositories.create_habit(user_id, payload.calendar_id, payload.name, payload.timer_duration)


@router.get("/v1/habits/{habit_id}", response_model=HabitResponse)
async def get_habit(habit_id: str, user_id: str = Depends(require_user_id)):
    return await repositories.get_habit(user_id, habit_id)


@router.patch("/v1/habits/{habit_id}", response_model=HabitResponse)
async def update_habit(habit_id: str, payload: HabitPatch, user_id: str = Depends(require_user_id)):
    return await repositories.update_habit(user_id, habit_id, payload.model_dump(exclude_unset=True))


@router.delete("/v1/habits/{habit_id}")
async def delete_habit(habit_id: str, user_id: str = Depends(require_user_id)):
    await repositories.remove_habit(user_id, habit_id)
    return {"ok": True}


@router.get("/v1/habits/{habit_id}/stats", response_model=HabitStatsResponse)
async def habit_stats(habit_id: str, user_id: str = Depends(require_user_id)):
    return await stats.habit_stats(user_id, habit_id)


@router.post("/v1/habits/{habit_id}/completions/toggle")
async def toggle_completion(habit_id: str, payload: CompletionToggle, user_id: str = Depends(require_user_id)):
    return await repositories.mark_completion(user_id, habit_id, payload.completed_at)


@router.put("/v1/habits/{habit_id}/completions/count")
async def set_completion_count(habit_id: str, payload: CompletionCount, user_id: str = Depends(require_user_id)):
    count = await repositories.set_completion_count(user_id, habit_id, payload.completed_at, payload.count)
    return {"habit_id": habit_id, "count": count}
