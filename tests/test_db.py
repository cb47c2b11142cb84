"""Tests for database URL handling and startup maintenance."""

import sqlite3

from fastapi.testclient import TestClient

from streak_api.db import _normalize_database_url
from streak_api.main import create_app

from conftest import make_calendar, make_habit


def test_normalize_database_url():
    assert _normalize_database_url("sqlite:///tmp/x.db") == "sqlite+aiosqlite:///tmp/x.db"
    assert _normalize_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"
    assert _normalize_database_url("postgres://u:p@db/app") == "postgresql+asyncpg://u:p@db/app"
    assert (
        _normalize_database_url("postgresql://u:p@db/app?sslmode=require&channel_binding=require")
        == "postgresql+asyncpg://u:p@db/app?ssl=true"
    )


def test_startup_backfills_missing_habit_positions(client, alice, db_path):
    calendar = make_calendar(client, alice)
    first = make_habit(client, alice, calendar["id"], "Run")
    second = make_habit(client, alice, calendar["id"], "Swim")

    with sqlite3.connect(db_path) as conn:
        conn.execute("UPDATE habits SET position = NULL")

    assert client.get(f"/v1/habits/{first['id']}", headers=alice).json()["position"] is None

    with TestClient(create_app()) as restarted:
        positions = {
            habit["name"]: habit["position"]
            for habit in restarted.get("/v1/habits", headers=alice).json()["items"]
        }
    assert positions == {"Run": 1, "Swim": 2}
    assert second["position"] == 2
