"""Server-sent events stream for background job notifications."""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from account_relay.api.dependencies import AdminDep, ServicesDep


router = APIRouter(tags=["events"])


@router.get("/api/events", dependencies=[AdminDep])
async def stream_events(services: ServicesDep) -> StreamingResponse:
    """Stream ``account:add:done`` and ``account:batchAdd:done`` events."""
    return StreamingResponse(
        services.broadcaster.stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
