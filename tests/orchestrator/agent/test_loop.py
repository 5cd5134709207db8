"""Tests for the multi-step agent loop and tool dispatch."""

import json

import pytest

from relaychat.orchestrator.agent.loop import (
    DEFAULT_MAX_AGENT_STEPS,
    active_tools_for_model,
    dispatch_tool_call,
    get_max_agent_steps,
    get_tool_call_timeout,
    run_agent_loop,
)
from relaychat.orchestrator.agent.model_provider import TextDelta, ToolCall
from relaychat.orchestrator.agent.tools.core import ToolOutcome
from relaychat.orchestrator.agent.writer import DONE_MARKER, MessageStreamWriter
from tests.helpers import FakeModelProvider, FakeTool, text_step, tool_step


async def _events(writer: MessageStreamWriter) -> list[dict]:
    """Close the writer and decode everything it emitted."""
    writer.close()
    chunks = [chunk async for chunk in writer.drain()]
    assert chunks[-1] == DONE_MARKER
    return [json.loads(chunk) for chunk in chunks[:-1]]


async def _run(provider, tools, active=None, **kwargs):
    writer = MessageStreamWriter("msg-1")
    result = await run_agent_loop(
        provider=provider,
        model_id="chat-model",
        system="You are helpful.",
        messages=[{"role": "user", "content": [{"type": "text", "text": "hi"}]}],
        tools=tools,
        active_tool_names=list(tools) if active is None else active,
        writer=writer,
        max_steps=kwargs.pop("max_steps", 5),
        tool_timeout=kwargs.pop("tool_timeout", 5.0),
    )
    return result, writer


# ============================================================================
# Configuration
# ============================================================================


class TestLoopConfig:
    """Tests for env-driven step cap and timeout."""

    def test_default_step_cap(self, monkeypatch):
        monkeypatch.delenv("MAX_AGENT_STEPS", raising=False)
        assert get_max_agent_steps() == DEFAULT_MAX_AGENT_STEPS

    def test_step_cap_from_env(self, monkeypatch):
        monkeypatch.setenv("MAX_AGENT_STEPS", "3")
        assert get_max_agent_steps() == 3

    def test_step_cap_never_below_one(self, monkeypatch):
        monkeypatch.setenv("MAX_AGENT_STEPS", "0")
        assert get_max_agent_steps() == 1

    def test_invalid_step_cap_falls_back(self, monkeypatch):
        monkeypatch.setenv("MAX_AGENT_STEPS", "lots")
        assert get_max_agent_steps() == DEFAULT_MAX_AGENT_STEPS

    def test_timeout_from_env(self, monkeypatch):
        monkeypatch.setenv("TOOL_CALL_TIMEOUT_SECONDS", "2.5")
        assert get_tool_call_timeout() == 2.5

    def test_reasoning_model_gets_no_tools(self):
        assert active_tools_for_model("chat-model-reasoning", ["a", "b"]) == []

    def test_chat_model_gets_all_tools(self):
        assert active_tools_for_model("chat-model", ["a", "b"]) == ["a", "b"]


# ============================================================================
# Dispatch
# ============================================================================


class TestDispatchToolCall:
    """Tests for single tool-call dispatch."""

    @pytest.mark.asyncio
    async def test_returns_tool_outcome(self):
        tool = FakeTool("a")
        outcome = await dispatch_tool_call(
            {"a": tool}, {"a"}, ToolCall(id="c1", name="a", input={"q": 1}), 5.0
        )
        assert outcome.kind == "ok"
        assert tool.inputs == [{"q": 1}]

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        outcome = await dispatch_tool_call(
            {}, set(), ToolCall(id="c1", name="missing", input={}), 5.0
        )
        assert outcome.is_error
        assert outcome.code == "tool_not_found"
        assert "missing" in outcome.error

    @pytest.mark.asyncio
    async def test_inactive_tool_is_not_executed(self):
        tool = FakeTool("a")
        outcome = await dispatch_tool_call(
            {"a": tool}, set(), ToolCall(id="c1", name="a", input={}), 5.0
        )
        assert outcome.code == "tool_not_found"
        assert tool.inputs == []

    @pytest.mark.asyncio
    async def test_timeout(self):
        tool = FakeTool("slow", delay=1.0)
        outcome = await dispatch_tool_call(
            {"slow": tool}, {"slow"}, ToolCall(id="c1", name="slow", input={}), 0.01
        )
        assert outcome.code == "tool_timeout"
        assert "timed out" in outcome.error

    @pytest.mark.asyncio
    async def test_exception_becomes_error_outcome(self):
        tool = FakeTool("broken", raises=RuntimeError("boom"))
        outcome = await dispatch_tool_call(
            {"broken": tool}, {"broken"}, ToolCall(id="c1", name="broken", input={}), 5.0
        )
        assert outcome.code == "tool_error"
        assert outcome.error == "boom"


# ============================================================================
# Loop
# ============================================================================


class TestRunAgentLoop:
    """Tests for run_agent_loop."""

    @pytest.mark.asyncio
    async def test_text_only_step_stops(self):
        """A step without tool calls ends the loop after one step."""
        provider = FakeModelProvider([text_step("Hello!")])
        result, writer = await _run(provider, {})

        assert result.steps == 1
        assert result.stop_reason == "end_turn"
        assert result.hit_step_cap is False
        events = await _events(writer)
        assert [e["type"] for e in events] == [
            "start-step", "text-delta", "finish-step",
        ]
        assert writer.parts() == [{"type": "text", "text": "Hello!"}]

    @pytest.mark.asyncio
    async def test_tools_offered_in_active_order(self):
        provider = FakeModelProvider([text_step("ok")])
        tools = {"a": FakeTool("a"), "b": FakeTool("b"), "c": FakeTool("c")}
        await _run(provider, tools, active=["b", "a", "unknown"])
        assert provider.calls[0]["tools"] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_tool_calls_run_in_order_and_feed_back(self):
        """Tool results are returned to the model in call order."""
        a, b = FakeTool("a"), FakeTool("b")
        provider = FakeModelProvider([
            tool_step([("c1", "a", {"x": 1}), ("c2", "b", {})], text="Working on it"),
            text_step("All done"),
        ])
        result, writer = await _run(provider, {"a": a, "b": b})

        assert result.steps == 2
        assert a.inputs == [{"x": 1}]
        assert b.inputs == [{}]

        second = provider.calls[1]["messages"]
        assert second[-2]["role"] == "assistant"
        assert [blk["type"] for blk in second[-2]["content"]] == ["text", "tool_use", "tool_use"]
        results = second[-1]["content"]
        assert [r["tool_use_id"] for r in results] == ["c1", "c2"]
        assert all(r["is_error"] is False for r in results)
        assert json.loads(results[0]["content"])["data"] == {"tool": "a"}

        events = await _events(writer)
        tool_events = [
            (e["type"], e["toolCallId"]) for e in events if "toolCallId" in e
        ]
        assert tool_events == [
            ("tool-input-available", "c1"),
            ("tool-output-available", "c1"),
            ("tool-input-available", "c2"),
            ("tool-output-available", "c2"),
        ]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_reported_to_model(self):
        provider = FakeModelProvider([
            tool_step([("c1", "doesNotExist", {})]),
            text_step("Sorry"),
        ])
        result, writer = await _run(provider, {"a": FakeTool("a")})

        assert result.steps == 2
        tool_result = provider.calls[1]["messages"][-1]["content"][0]
        assert tool_result["is_error"] is True
        assert "doesNotExist" in json.loads(tool_result["content"])["error"]
        part = writer.parts()[0]
        assert part["type"] == "tool-invocation"
        assert part["state"] == "output-error"

    @pytest.mark.asyncio
    async def test_tool_failure_does_not_end_turn(self):
        """A raising tool and a hanging tool both become error results."""
        tools = {
            "broken": FakeTool("broken", raises=RuntimeError("boom")),
            "slow": FakeTool("slow", delay=1.0),
            "fine": FakeTool("fine"),
        }
        provider = FakeModelProvider([
            tool_step([("c1", "broken", {}), ("c2", "slow", {}), ("c3", "fine", {})]),
            text_step("Recovered"),
        ])
        result, writer = await _run(provider, tools, tool_timeout=0.05)

        assert result.steps == 2
        assert tools["fine"].inputs == [{}]
        results = provider.calls[1]["messages"][-1]["content"]
        assert [r["is_error"] for r in results] == [True, True, False]

        events = await _events(writer)
        errors = [e for e in events if e["type"] == "tool-output-error"]
        assert [e["toolCallId"] for e in errors] == ["c1", "c2"]
        assert "boom" in errors[0]["errorText"]
        assert "timed out" in errors[1]["errorText"]

    @pytest.mark.asyncio
    async def test_step_cap(self):
        provider = FakeModelProvider([
            tool_step([("c1", "a", {})]),
            tool_step([("c2", "a", {})]),
            tool_step([("c3", "a", {})]),
        ])
        result, _ = await _run(provider, {"a": FakeTool("a")}, max_steps=2)

        assert result.hit_step_cap is True
        assert result.steps == 2
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_auth_required_emits_affordance(self):
        outcome = ToolOutcome.auth_required(
            "https://connect.example.com/x", "Gmail", "authenticateGmail"
        )
        provider = FakeModelProvider([
            tool_step([("c1", "gmailSendEmail", {})]),
            text_step("Please connect Gmail"),
        ])
        _, writer = await _run(
            provider, {"gmailSendEmail": FakeTool("gmailSendEmail", outcome=outcome)}
        )

        events = await _events(writer)
        auth = [e for e in events if e["type"] == "data-auth-required"]
        assert len(auth) == 1
        assert auth[0]["toolCallId"] == "c1"
        assert auth[0]["data"]["authUrl"] == "https://connect.example.com/x"
        assert auth[0]["data"]["requiresAuth"] is True

    @pytest.mark.asyncio
    async def test_reasoning_deltas_are_streamed(self):
        provider = FakeModelProvider([text_step("Answer", reasoning="Thinking...")])
        _, writer = await _run(provider, {})

        events = await _events(writer)
        assert events[1] == {"type": "reasoning-delta", "delta": "Thinking..."}
        assert writer.parts() == [
            {"type": "reasoning", "text": "Thinking..."},
            {"type": "text", "text": "Answer"},
        ]

    @pytest.mark.asyncio
    async def test_step_without_result_raises(self):
        provider = FakeModelProvider([[TextDelta("partial")]])
        with pytest.raises(RuntimeError):
            await _run(provider, {})
