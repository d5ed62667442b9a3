"""In-process event fan-out for asynchronous job notifications.

Emission is fire-and-forget: each subscriber owns a bounded queue and a slow
subscriber only loses its own events.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import orjson
from structlog import get_logger


logger = get_logger(__name__)

DEFAULT_QUEUE_SIZE = 100
KEEPALIVE_SECONDS = 15.0


@dataclass(frozen=True)
class Event:
    """A named notification with a JSON payload."""

    name: str
    data: dict[str, Any]

    def to_sse(self) -> bytes:
        """Encode as a server-sent events frame."""
        return b"event: " + self.name.encode() + b"\ndata: " + orjson.dumps(self.data) + b"\n\n"


class EventBroadcaster:
    """Publish/subscribe hub backing the ``/api/events`` stream."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[Event]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[Event]:
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(queue)
        logger.debug("event_subscriber_added", subscribers=len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        self._subscribers.discard(queue)
        logger.debug("event_subscriber_removed", subscribers=len(self._subscribers))

    def broadcast(self, name: str, data: dict[str, Any]) -> int:
        """Deliver an event to every current subscriber.

        Returns:
            Number of subscribers the event was queued for
        """
        event = Event(name=name, data=data)
        delivered = 0
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.debug("event_dropped_queue_full", event_name=name)
        logger.info("event_broadcast", event_name=name, delivered=delivered)
        return delivered

    async def stream(
        self, keepalive_seconds: float = KEEPALIVE_SECONDS
    ) -> AsyncIterator[bytes]:
        """Yield SSE frames for a new subscriber until the consumer goes away."""
        queue = self.subscribe()
        try:
            yield b": connected\n\n"
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
                except TimeoutError:
                    yield b": keepalive\n\n"
                    continue
                yield event.to_sse()
        finally:
            self.unsubscribe(queue)
