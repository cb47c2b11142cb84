"""Tests for the snapshot download/upload client."""

import json
from datetime import date

import pytest

from streak_api import client as api_client
from streak_api.errors import InvalidInput

DOCUMENT = {"calendars": [{"name": "Fitness", "colorTheme": "red", "position": 1, "habits": []}]}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason="OK"):
        self.status_code = status_code
        self.ok = status_code < 400
        self.reason = reason
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "http://api.test/")
    monkeypatch.setenv("BACKEND_SESSION_SECRET", "s3cret")
    monkeypatch.setenv("STREAK_USER_ID", "alice")
    calls = []

    def fake_request(method, url, params=None, json=None, headers=None, timeout=None):
        calls.append({"method": method, "url": url, "json": json, "headers": headers})
        if method == "GET":
            return FakeResponse(payload=DOCUMENT)
        return FakeResponse(payload={"ok": True, "calendars_created": 1})

    monkeypatch.setattr(api_client._SESSION, "request", fake_request)
    return calls


def test_export_writes_dated_file(configured, tmp_path):
    target = api_client.export_to_file(tmp_path, day=date(2024, 3, 10))
    assert target.name == "streak-calendar-export-2024-03-10.json"
    assert json.loads(target.read_text(encoding="utf-8")) == DOCUMENT
    assert configured[0]["url"] == "http://api.test/v1/export"
    assert configured[0]["headers"] == {"X-User-Id": "alice", "X-Backend-Token": "s3cret"}


def test_import_posts_file_contents(configured, tmp_path):
    path = tmp_path / "export.json"
    path.write_text(json.dumps(DOCUMENT), encoding="utf-8")
    assert api_client.import_from_file(path) == {"ok": True, "calendars_created": 1}
    assert configured[0]["method"] == "POST"
    assert configured[0]["json"] == DOCUMENT


def test_import_rejects_non_json_file(configured, tmp_path):
    path = tmp_path / "export.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidInput):
        api_client.import_from_file(path)
    assert configured == []


def test_api_errors_carry_status(monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "http://api.test")
    monkeypatch.setenv("BACKEND_SESSION_SECRET", "s3cret")
    monkeypatch.setenv("STREAK_USER_ID", "alice")
    monkeypatch.setattr(
        api_client._SESSION,
        "request",
        lambda *args, **kwargs: FakeResponse(400, {"detail": "Invalid file format"}, "Bad Request"),
    )
    with pytest.raises(api_client.ApiError) as excinfo:
        api_client.request("POST", "/v1/import", json={})
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == {"detail": "Invalid file format"}


def test_missing_configuration(monkeypatch):
    monkeypatch.delenv("API_BASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        api_client.request("GET", "/v1/export")


def test_main_reports_failures(configured, tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text("nope", encoding="utf-8")
    assert api_client.main(["import", str(path)]) == 1
    assert "Import failed" in capsys.readouterr().err


def test_main_export(configured, tmp_path, capsys):
    assert api_client.main(["export", "--dir", str(tmp_path)]) == 0
    written = capsys.readouterr().out.strip()
    assert written.endswith(".json")
