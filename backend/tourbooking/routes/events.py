from __future__ import annotations

import json
from typing import Any, AsyncGenerator, Dict

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from tourbooking.stores.draft_store import draft_store
from tourbooking.stores.event_bus import event_bus

router = APIRouter(prefix="/events", tags=["events"])

PING_SECONDS = 15


async def _event_stream(draft_id: str, snapshot: Dict[str, Any]) -> AsyncGenerator[Dict[str, str], None]:
    yield {"event": "status", "data": json.dumps(snapshot)}
    async for event in event_bus.stream(draft_id):
        yield {"event": event.get("type", "message"), "data": json.dumps(event)}


@router.get("/{draft_id}")
async def listen(draft_id: str) -> EventSourceResponse:
    """SSE feed of one draft: OTP countdown, verification and submit progress."""

    controller = draft_store.get(draft_id)
    if not controller:
        raise HTTPException(status_code=404, detail="Draft not found")
    draft = controller.draft
    snapshot = {
        "type": "status",
        "draft_id": draft_id,
        "status": draft.status.value,
        "verification": draft.verification.step.value,
        "remaining_seconds": draft.verification.remaining_seconds,
    }
    return EventSourceResponse(_event_stream(draft_id, snapshot), ping=PING_SECONDS)
