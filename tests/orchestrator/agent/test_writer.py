"""Tests for MessageStreamWriter event emission and part accumulation."""

import json

import pytest

from relaychat.orchestrator.agent.writer import DONE_MARKER, MessageStreamWriter


async def _drain(writer: MessageStreamWriter) -> list[str]:
    return [chunk async for chunk in writer.drain()]


class TestMessageStreamWriter:
    """Tests for the queue-backed writer."""

    @pytest.mark.asyncio
    async def test_drain_ends_with_done_marker(self):
        writer = MessageStreamWriter("m1")
        writer.start()
        writer.finish()
        writer.close()

        chunks = await _drain(writer)
        assert [json.loads(c)["type"] for c in chunks[:-1]] == ["start", "finish"]
        assert json.loads(chunks[0])["messageId"] == "m1"
        assert chunks[-1] == DONE_MARKER

    @pytest.mark.asyncio
    async def test_events_after_close_are_dropped(self):
        writer = MessageStreamWriter("m1")
        writer.close()
        writer.text_delta("late")
        writer.close()

        assert await _drain(writer) == [DONE_MARKER]

    def test_text_deltas_merge_into_one_part(self):
        writer = MessageStreamWriter("m1")
        writer.text_delta("Hel")
        writer.text_delta("lo")
        writer.text_delta("")
        assert writer.parts() == [{"type": "text", "text": "Hello"}]

    def test_new_step_starts_new_text_part(self):
        writer = MessageStreamWriter("m1")
        writer.text_delta("first")
        writer.start_step()
        writer.text_delta("second")
        assert [p["text"] for p in writer.parts()] == ["first", "second"]

    def test_tool_call_splits_text_parts(self):
        writer = MessageStreamWriter("m1")
        writer.text_delta("Before")
        writer.tool_input_available("c1", "a", {"x": 1})
        writer.tool_output_available("c1", {"success": True})
        writer.text_delta("After")

        parts = writer.parts()
        assert [p["type"] for p in parts] == ["text", "tool-invocation", "text"]
        assert parts[1]["state"] == "output-available"
        assert parts[1]["output"] == {"success": True}

    @pytest.mark.asyncio
    async def test_tool_error_event(self):
        writer = MessageStreamWriter("m1")
        writer.tool_input_available("c1", "a", {})
        writer.tool_output_error("c1", "bad")
        writer.close()

        events = [json.loads(c) for c in (await _drain(writer))[:-1]]
        assert events[-1] == {"type": "tool-output-error", "toolCallId": "c1", "errorText": "bad"}
        assert writer.parts()[0]["errorText"] == "bad"

    @pytest.mark.asyncio
    async def test_error_event(self):
        writer = MessageStreamWriter("m1")
        writer.error("Oops")
        writer.close()
        chunks = await _drain(writer)
        assert json.loads(chunks[0]) == {"type": "error", "errorText": "Oops"}
