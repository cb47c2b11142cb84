from __future__ import annotations

from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CalendarCreate(BaseModel):
    name: str
    color_theme: str
    position: Optional[int] = None


class CalendarPatch(BaseModel):
    name: Optional[str] = None
    color_theme: Optional[str] = None
    position: Optional[int] = None


class CalendarResponse(BaseModel):
    id: str
    user_id: str
    name: str
    color_theme: str
    position: Optional[int]


class HabitCreate(BaseModel):
    calendar_id: str
    name: str
    timer_duration: Optional[int] = None


class HabitPatch(BaseModel):
    name: Optional[str] = None
    timer_duration: Optional[int] = None
    calendar_id: Optional[str] = None
    position: Optional[int] = None


class HabitResponse(BaseModel):
    id: str
    user_id: str
    calendar_id: str
    name: str
    timer_duration: Optional[int]
    position: Optional[int]


class CompletionToggle(BaseModel):
    completed_at: int


class CompletionCount(BaseModel):
    completed_at: int
    count: Optional[int] = None


class CompletionsPage(BaseModel):
    items: List[Dict[str, Any]]
    cursor: Optional[str]
    has_more: bool


class HabitStatsResponse(BaseModel):
    habit_id: str
    total_completions: int
    month_completions: int
    current_streak: int
    off_streak: int


class PreferencePayload(BaseModel):
    value: str


# Snapshot documents use the camelCase keys of the export file format.


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class _NamedSnapshotModel(_SnapshotModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name cannot be empty")
        return value


class CompletionSnapshot(_SnapshotModel):
    completed_at: int = Field(..., alias="completedAt")


class HabitSnapshot(_NamedSnapshotModel):
    timer_duration: Optional[int] = Field(None, ge=0, alias="timerDuration")
    position: Optional[int] = Field(None, ge=1)
    completions: List[CompletionSnapshot]


class CalendarSnapshot(_NamedSnapshotModel):
    color_theme: str = Field(..., alias="colorTheme")
    position: Optional[int] = Field(None, ge=1)
    habits: List[HabitSnapshot]


class Snapshot(_SnapshotModel):
    calendars: List[CalendarSnapshot]

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
