from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from resolution_lab.application import LabService, get_lab_service
from resolution_lab.domain import StoreEvent

router = APIRouter(tags=["events"])


def format_event(service: LabService, event: StoreEvent) -> str:
    """Render one store event as a server-sent-events frame."""

    body: dict[str, object] = {"kind": event.kind.value, "action": event.action, "record_id": event.record_id}
    if event.record_id:
        record = service.get_record(event.record_id)
        if record is not None:
            body["record"] = record.model_dump(mode="json")
    body["status"] = service.status()
    return f"data: {json.dumps(body, ensure_ascii=False)}\n\n"


@router.get("/events")
async def stream_events(request: Request) -> StreamingResponse:
    service = get_lab_service()
    pending: asyncio.Queue[StoreEvent] = asyncio.Queue()
    unsubscribe = service.store.subscribe(pending.put_nowait)

    async def event_generator():
        try:
            yield f"data: {json.dumps({'kind': 'hello', 'status': service.status()})}\n\n"
            while not await request.is_disconnected():
                try:
                    event = await asyncio.wait_for(pending.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield format_event(service, event)
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
