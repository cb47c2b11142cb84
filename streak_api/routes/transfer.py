from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from streak_api.auth import require_user_id
from streak_api.dates import resolve_timezone, today
from streak_api.services import transfer

router = APIRouter()


@router.get("/v1/export")
async def export_data(user_id: str = Depends(require_user_id)):
    snapshot = await transfer.export_snapshot(user_id)
    return JSONResponse(
        content=snapshot.to_document(),
        headers={"Content-Disposition": f'attachment; filename="{transfer.export_filename(today(resolve_timezone()))}"'},
    )


@router.post("/v1/import")
async def import_data(request: Request, user_id: str = Depends(require_user_id)):
    snapshot = transfer.parse_snapshot(await request.body())
    summary = await transfer.import_snapshot(user_id, snapshot)
    return {"ok": True, **summary}
