from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from streak_api.db import dispose_engine
from streak_api.db_init import init_db
from streak_api.errors import StreakError
from streak_api.logging_config import configure_logging
from streak_api.routes import calendars, completions, habits, preferences, transfer


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Streak Calendar API", version="0.1.0")

    app.include_router(calendars.router)
    app.include_router(habits.router)
    app.include_router(completions.router)
    app.include_router(transfer.router)
    app.include_router(preferences.router)

    @app.on_event("startup")
    async def _startup():
        await init_db()

    @app.on_event("shutdown")
    async def _shutdown():
        await dispose_engine()

    @app.exception_handler(StreakError)
    async def _streak_error_handler(request: Request, exc: StreakError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logging.getLogger("streak_api").exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app


app = create_app()
