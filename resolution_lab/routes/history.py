from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Response
from fastapi.responses import FileResponse

from resolution_lab.application import ResolutionInFlightError, get_lab_service

router = APIRouter(prefix="/history", tags=["history"])

MEDIA_TYPES = {"json": "application/json", "csv": "text/csv"}


@router.get("")
async def list_history() -> dict:
    records = get_lab_service().list_history()
    return {"items": [record.model_dump(mode="json") for record in records]}


@router.delete("")
async def clear_history() -> dict:
    get_lab_service().clear_history()
    return {"items": []}


@router.get("/export")
async def export_history(
    format: str = Query(default="json"),
    record_id: str | None = Query(default=None),
):
    service = get_lab_service()
    try:
        path = service.export(format, record_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if path is None:
        return Response(status_code=204)
    return FileResponse(path, media_type=MEDIA_TYPES[format], filename=path.name)


@router.get("/{record_id}")
async def get_record(record_id: str) -> dict:
    record = get_lab_service().get_record(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="record not found")
    return record.model_dump(mode="json")


@router.post("/{record_id}/retry", status_code=202)
async def retry_record(record_id: str, payload: dict | None = None) -> dict:
    service = get_lab_service()
    mode = (payload or {}).get("mode")
    try:
        service.request_retry(record_id, mode)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="record not found") from exc
    except ResolutionInFlightError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="mode must be fast, deep or both") from exc
    record = service.get_record(record_id)
    return record.model_dump(mode="json") if record else {"id": record_id}
