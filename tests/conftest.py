"""Shared test fixtures for the streak calendar API tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from streak_api import db, settings
from streak_api.main import create_app

SECRET = "test-secret"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "streak.db"


@pytest.fixture
def client(db_path: Path, monkeypatch):
    """App wired to a throwaway SQLite file, with startup and shutdown run."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("BACKEND_SESSION_SECRET", SECRET)
    monkeypatch.setenv("CALENDAR_TIMEZONE", "UTC")
    monkeypatch.delenv("ALLOWED_USERS", raising=False)
    settings.reset_settings()
    db._engine = None
    db._session_factory = None
    with TestClient(create_app()) as test_client:
        yield test_client
    settings.reset_settings()


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id, "X-Backend-Token": SECRET}


@pytest.fixture
def alice() -> dict:
    return as_user("alice")


@pytest.fixture
def bob() -> dict:
    return as_user("bob")


def make_calendar(client, headers, name="Fitness", color_theme="red", **extra) -> dict:
    response = client.post("/v1/calendars", json={"name": name, "color_theme": color_theme, **extra}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def make_habit(client, headers, calendar_id, name="Run", timer_duration=None) -> dict:
    payload = {"calendar_id": calendar_id, "name": name}
    if timer_duration is not None:
        payload["timer_duration"] = timer_duration
    response = client.post("/v1/habits", json=payload, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def toggle(client, headers, habit_id, completed_at) -> dict:
    response = client.post(
        f"/v1/habits/{habit_id}/completions/toggle",
        json={"completed_at": completed_at},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


def all_completions(client, headers, **params) -> list[dict]:
    response = client.get(
        "/v1/completions",
        params={"start": 0, "end": 4_102_444_800_000, **params},
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()["items"]
