"""HTTP client for the snapshot endpoints.

Downloads the caller's snapshot to ``streak-calendar-export-YYYY-MM-DD.json``
and uploads a previously exported file. Configured through ``API_BASE_URL``,
``BACKEND_SESSION_SECRET`` and ``STREAK_USER_ID``.
"""

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from streak_api.errors import InvalidInput
from streak_api.logging_config import configure_logging
from streak_api.services.transfer import export_filename

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    def __init__(self, status_code: int, reason: str, detail: Any):
        super().__init__(f"API error {status_code} {reason}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _build_session():
    session = requests.Session()
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(502, 503, 504),
        allowed_methods=("GET", "POST", "PUT", "PATCH", "DELETE"),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


_SESSION = _build_session()


def api_base_url():
    return os.getenv("API_BASE_URL") or ""


def backend_token():
    return os.getenv("BACKEND_SESSION_SECRET") or ""


def user_id():
    return os.getenv("STREAK_USER_ID") or ""


def request(method: str, path: str, params: dict | None = None, json: Any = None, timeout: int = 30) -> requests.Response:
    base = api_base_url().rstrip("/")
    if not base:
        raise RuntimeError("API_BASE_URL not configured")
    token = backend_token()
    if not token:
        raise RuntimeError("BACKEND_SESSION_SECRET not configured")
    caller = user_id()
    if not caller:
        raise RuntimeError("STREAK_USER_ID not configured")
    headers = {
        "X-User-Id": caller,
        "X-Backend-Token": token,
    }
    url = f"{base}{path}"
    response = _SESSION.request(method, url, params=params, json=json, headers=headers, timeout=timeout)
    if not response.ok:
        try:
            detail = response.json()
        except ValueError:
            detail = response.text
        raise ApiError(response.status_code, response.reason, detail)
    return response


def export_to_file(directory: str | Path = ".", day: date | None = None) -> Path:
    document = request("GET", "/v1/export").json()
    target = Path(directory) / export_filename(day or date.today())
    target.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Exported %s calendars to %s", len(document.get("calendars") or []), target)
    return target


def import_from_file(path: str | Path) -> dict:
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidInput("Invalid file format") from exc
    summary = request("POST", "/v1/import", json=document).json()
    logger.info("Imported %s: %s", path, summary)
    return summary


def main(argv: list[str] | None = None) -> int:
    configure_logging("STREAK_CLIENT_LOG_LEVEL")
    parser = argparse.ArgumentParser(prog="streak-calendar", description="Export or import streak calendar data.")
    sub = parser.add_subparsers(dest="command", required=True)
    export_parser = sub.add_parser("export", help="Download all calendars to a JSON file")
    export_parser.add_argument("--dir", default=".", help="Directory to write the export file to")
    import_parser = sub.add_parser("import", help="Merge a previously exported JSON file")
    import_parser.add_argument("path")
    args = parser.parse_args(argv)

    try:
        if args.command == "export":
            print(export_to_file(args.dir))
        else:
            summary = import_from_file(args.path)
            print(json.dumps(summary, indent=2))
    except (ApiError, InvalidInput, RuntimeError, OSError) as exc:
        print(f"{args.command.capitalize()} failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
