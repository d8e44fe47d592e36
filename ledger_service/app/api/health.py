from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from common.mongo.client import is_ready


router = APIRouter()


@router.get("/health", summary="헬스 체크")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/ready", summary="레디니스 체크 (MongoDB 연결 여부)")
async def ready() -> JSONResponse:
    if not is_ready():
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return JSONResponse(status_code=200, content={"status": "ready"})
