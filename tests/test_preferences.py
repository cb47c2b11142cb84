"""Tests for the persisted view preference store."""


def test_calendar_view_defaults_to_grid(client, alice):
    assert client.get("/v1/preferences/calendar_view", headers=alice).json() == {
        "key": "calendar_view",
        "value": "monthGrid",
    }


def test_calendar_view_is_saved_per_user(client, alice, bob):
    response = client.put("/v1/preferences/calendar_view", json={"value": "monthRow"}, headers=alice)
    assert response.json() == {"ok": True}
    assert client.get("/v1/preferences/calendar_view", headers=alice).json()["value"] == "monthRow"
    assert client.get("/v1/preferences/calendar_view", headers=bob).json()["value"] == "monthGrid"

    client.put("/v1/preferences/calendar_view", json={"value": "monthGrid"}, headers=alice)
    assert client.get("/v1/preferences/calendar_view", headers=alice).json()["value"] == "monthGrid"


def test_invalid_preferences_are_rejected(client, alice):
    assert client.put("/v1/preferences/calendar_view", json={"value": "weekly"}, headers=alice).status_code == 400
    assert client.get("/v1/preferences/theme", headers=alice).status_code == 400
    assert client.put("/v1/preferences/theme", json={"value": "dark"}, headers=alice).status_code == 400
