"""Unit tests for EventBus and Event."""

import pytest

from llmgrid.events import Event, EventBus, EventType


class TestEventBus:
    """Handler registration and dispatch."""

    @pytest.mark.asyncio
    async def test_dispatch_by_type(self):
        bus = EventBus()
        received = []

        async def on_row(event):
            received.append(event.row)

        bus.on(EventType.ROW_DONE, on_row)

        await bus.emit(Event.row_done("col", 3, "value"))
        await bus.emit(Event.row_skipped("col", 4))

        assert received == [3]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self):
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def healthy(event):
            received.append(event.type)

        bus.on_all(broken)
        bus.on_all(healthy)

        await bus.emit(Event.job_start("col", 2))

        assert received == [EventType.JOB_START]

    @pytest.mark.asyncio
    async def test_off_all(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.on_all(handler)
        bus.off_all(handler)

        await bus.emit(Event.job_end("col", {}))

        assert received == []
        assert not bus.has_handlers(EventType.JOB_END)


class TestEventToDict:
    """SSE payloads."""

    def test_row_done_with_error(self):
        event = Event.row_done("col", 1, "配额不足", error="配额不足")

        assert event.to_dict() == {
            "type": "row.done",
            "column_id": "col",
            "row": 1,
            "data": {"value": "配额不足"},
            "error": "配额不足",
        }

    def test_job_error(self):
        assert Event.job_error("col", "失败").to_dict() == {
            "type": "job.error",
            "column_id": "col",
            "error": "失败",
        }
