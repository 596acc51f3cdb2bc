# vault/api/events.py

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from vault.api.deps import client_address, get_registry
from vault.services.stream import event_stream
from vault.services.subscriber_registry import SubscriberRegistry

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # nginx: do not buffer the stream
}


@router.get("/events")
async def stream_events(request: Request, registry: SubscriberRegistry = Depends(get_registry)):
    """
    Long-lived text/event-stream of add / delete / seen events.
    Each frame is `data: <json>\\n\\n`; no replay on reconnect.
    """
    return StreamingResponse(
        event_stream(request, registry, peer=client_address(request)),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
