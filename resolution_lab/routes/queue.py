from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from resolution_lab.application import get_lab_service

router = APIRouter(tags=["queue"])


@router.get("/queue")
async def list_queue(
    tier: str = Query(default="All"),
    sort: str = Query(default="timestamp"),
    order: str = Query(default="asc"),
) -> dict:
    service = get_lab_service()
    try:
        items = service.list_queue(tier=tier, sort=sort, order=order)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"items": [item.model_dump(mode="json") for item in items]}


@router.post("/queue/samples")
async def inject_samples(payload: dict | None = None) -> dict:
    count = (payload or {}).get("count", 5)
    if not isinstance(count, int) or not 1 <= count <= 50:
        raise HTTPException(status_code=400, detail="count must be an integer between 1 and 50")
    items = get_lab_service().inject_samples(count)
    return {"items": [item.model_dump(mode="json") for item in items]}


@router.post("/queue/manual")
async def inject_manual(payload: dict) -> dict:
    name = str(payload.get("name") or "").strip()
    email = str(payload.get("email") or "").strip()
    transcript = str(payload.get("transcript") or "").strip()
    if not name or not transcript:
        raise HTTPException(status_code=400, detail="name and transcript are required")
    item = get_lab_service().inject_manual(name, email, transcript)
    return item.model_dump(mode="json")


@router.delete("/queue")
async def clear_queue() -> dict:
    get_lab_service().clear_queue()
    return {"items": []}


@router.post("/queue/start")
async def start_drain() -> dict:
    service = get_lab_service()
    started = service.start()
    return {"started": started, **service.status()}


@router.get("/status")
async def get_status() -> dict:
    return get_lab_service().status()


@router.get("/mode")
async def get_mode() -> dict:
    return {"mode": get_lab_service().get_mode().value}


@router.put("/mode")
async def set_mode(payload: dict) -> dict:
    mode = payload.get("mode")
    try:
        selected = get_lab_service().set_mode(str(mode))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="mode must be fast, deep or both") from exc
    return {"mode": selected.value}
