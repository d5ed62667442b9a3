"""Submit-and-respond background jobs.

The HTTP layer answers immediately with a job id; the job runs as an
asyncio task and reports its outcome through the event broadcaster.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import shortuuid
from structlog import get_logger

from account_relay.events.broadcaster import EventBroadcaster


logger = get_logger(__name__)

JobBody = Callable[[], Awaitable[dict[str, Any]]]


def new_job_id(kind: str) -> str:
    return f"{kind}-{shortuuid.uuid()[:12]}"


class JobRunner:
    """Runs background jobs and broadcasts their completion events."""

    def __init__(self, broadcaster: EventBroadcaster) -> None:
        self.broadcaster = broadcaster
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        kind: str,
        event_name: str,
        body: JobBody,
        context: dict[str, Any] | None = None,
    ) -> str:
        """Start ``body`` in the background.

        ``body`` returns the event payload; ``jobId`` and ``context`` are
        merged into it. If it raises, the event is still sent with
        ``success: False`` and the error message.

        Returns:
            The job id
        """
        job_id = new_job_id(kind)
        base = {"jobId": job_id, **(context or {})}

        async def run() -> None:
            try:
                result = await body()
            except Exception as e:  # noqa: BLE001 - job failures are reported, not raised
                logger.exception("background_job_failed", job_id=job_id, kind=kind)
                self.broadcaster.broadcast(
                    event_name, {**base, "success": False, "error": str(e)}
                )
                return
            self.broadcaster.broadcast(event_name, {**base, **result})

        task = asyncio.create_task(run(), name=job_id)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("background_job_submitted", job_id=job_id, kind=kind)
        return job_id

    async def drain(self) -> None:
        """Wait for all running jobs (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
