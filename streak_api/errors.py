"""Error kinds raised by repositories and services.

Routes let these propagate; ``main.create_app`` turns them into JSON error
responses with the status code attached to each kind.
"""

from __future__ import annotations


class StreakError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(StreakError):
    status_code = 401


class Unauthorized(StreakError):
    status_code = 403


class NotFound(StreakError):
    status_code = 404


class InvalidInput(StreakError):
    status_code = 400
