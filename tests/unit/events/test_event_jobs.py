"""Tests for the event broadcaster and background job runner."""

import asyncio
import json

import pytest

from account_relay.events.broadcaster import Event, EventBroadcaster
from account_relay.events.jobs import JobRunner, new_job_id


def _decode(frame: bytes) -> tuple[str, dict]:
    lines = frame.decode().strip().split("\n")
    name = lines[0].removeprefix("event: ")
    data = json.loads(lines[1].removeprefix("data: "))
    return name, data


@pytest.mark.unit
def test_event_sse_frame() -> None:
    frame = Event("account:add:done", {"jobId": "add-1", "success": True}).to_sse()

    assert frame.endswith(b"\n\n")
    assert _decode(frame) == ("account:add:done", {"jobId": "add-1", "success": True})


@pytest.mark.unit
def test_job_ids_are_prefixed_and_unique() -> None:
    ids = {new_job_id("batch") for _ in range(100)}

    assert len(ids) == 100
    assert all(job_id.startswith("batch-") for job_id in ids)


@pytest.mark.unit
@pytest.mark.asyncio
class TestEventBroadcaster:
    async def test_broadcast_reaches_every_subscriber(self) -> None:
        broadcaster = EventBroadcaster()
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()

        delivered = broadcaster.broadcast("ping", {"n": 1})

        assert delivered == 2
        assert first.get_nowait() == Event("ping", {"n": 1})
        assert second.get_nowait() == Event("ping", {"n": 1})

    async def test_full_queue_drops_only_its_own_events(self) -> None:
        broadcaster = EventBroadcaster(queue_size=1)
        slow = broadcaster.subscribe()
        fast = broadcaster.subscribe()

        broadcaster.broadcast("one", {})
        fast.get_nowait()
        delivered = broadcaster.broadcast("two", {})

        assert delivered == 1
        assert slow.get_nowait().name == "one"
        assert fast.get_nowait().name == "two"

    async def test_unsubscribe(self) -> None:
        broadcaster = EventBroadcaster()
        queue = broadcaster.subscribe()
        broadcaster.unsubscribe(queue)

        assert broadcaster.broadcast("ping", {}) == 0
        assert broadcaster.subscriber_count == 0

    async def test_stream_yields_events_and_keepalives(self) -> None:
        broadcaster = EventBroadcaster()
        stream = broadcaster.stream(keepalive_seconds=0.01)

        assert await stream.__anext__() == b": connected\n\n"
        assert broadcaster.subscriber_count == 1

        assert await stream.__anext__() == b": keepalive\n\n"

        broadcaster.broadcast("account:add:done", {"jobId": "x"})
        frame = await stream.__anext__()
        assert _decode(frame) == ("account:add:done", {"jobId": "x"})

        await stream.aclose()
        assert broadcaster.subscriber_count == 0


@pytest.mark.unit
@pytest.mark.asyncio
class TestJobRunner:
    async def test_result_broadcast_with_job_id_and_context(self) -> None:
        broadcaster = EventBroadcaster()
        queue = broadcaster.subscribe()
        runner = JobRunner(broadcaster)

        async def body() -> dict:
            return {"success": True}

        job_id = runner.submit("add", "account:add:done", body, {"email": "a@example.com"})
        await runner.drain()

        event = queue.get_nowait()
        assert event.name == "account:add:done"
        assert event.data == {"jobId": job_id, "email": "a@example.com", "success": True}
        assert runner.pending == 0

    async def test_failure_reported_as_event(self) -> None:
        broadcaster = EventBroadcaster()
        queue = broadcaster.subscribe()
        runner = JobRunner(broadcaster)

        async def body() -> dict:
            raise RuntimeError("login exploded")

        job_id = runner.submit("add", "account:add:done", body, {"email": "a@example.com"})
        await runner.drain()

        assert queue.get_nowait().data == {
            "jobId": job_id,
            "email": "a@example.com",
            "success": False,
            "error": "login exploded",
        }

    async def test_cancel_all(self) -> None:
        runner = JobRunner(EventBroadcaster())

        async def body() -> dict:
            await asyncio.sleep(10)
            return {}

        runner.submit("batch", "account:batchAdd:done", body)
        assert runner.pending == 1

        await runner.cancel_all()

        assert runner.pending == 0
