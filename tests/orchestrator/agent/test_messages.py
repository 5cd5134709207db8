"""Tests for message parts, tool invocation states, and history conversion."""

import json

import pytest

from relaychat.orchestrator.agent.messages import (
    AssistantMessageDraft,
    InvalidToolStateTransition,
    ToolInvocationPart,
    to_anthropic_messages,
)


# ============================================================================
# Tool Invocation States
# ============================================================================


class TestToolInvocationPart:
    """Tests for the forward-only tool state path."""

    def test_starts_streaming(self):
        part = ToolInvocationPart(tool_name="gmailSendEmail", tool_call_id="c1")
        assert part.state == "input-streaming"
        assert part.is_terminal is False

    def test_happy_path(self):
        part = ToolInvocationPart(tool_name="gmailSendEmail", tool_call_id="c1")
        part.advance("input-available", input={"subject": "Hi"})
        part.advance("output-available", output={"success": True})

        assert part.is_terminal
        assert part.to_dict() == {
            "type": "tool-invocation",
            "toolName": "gmailSendEmail",
            "toolCallId": "c1",
            "input": {"subject": "Hi"},
            "state": "output-available",
            "output": {"success": True},
        }

    def test_error_path(self):
        part = ToolInvocationPart(tool_name="a", tool_call_id="c1")
        part.advance("input-available", input={})
        part.advance("output-error", error_text="nope")

        serialized = part.to_dict()
        assert serialized["state"] == "output-error"
        assert serialized["errorText"] == "nope"
        assert "output" not in serialized

    def test_cannot_skip_input(self):
        part = ToolInvocationPart(tool_name="a", tool_call_id="c1")
        with pytest.raises(InvalidToolStateTransition):
            part.advance("output-available", output={})

    def test_terminal_state_is_final(self):
        part = ToolInvocationPart(tool_name="a", tool_call_id="c1")
        part.advance("input-available", input={})
        part.advance("output-available", output={})
        with pytest.raises(InvalidToolStateTransition) as exc_info:
            part.advance("output-error", error_text="late")
        assert exc_info.value.current == "output-available"
        assert part.state == "output-available"

    def test_cannot_go_backwards(self):
        part = ToolInvocationPart(tool_name="a", tool_call_id="c1")
        part.advance("input-available", input={})
        with pytest.raises(InvalidToolStateTransition):
            part.advance("input-streaming")


class TestAssistantMessageDraft:
    """Tests for draft serialization."""

    def test_mixes_plain_and_tool_parts(self):
        part = ToolInvocationPart(tool_name="a", tool_call_id="c1")
        part.advance("input-available", input={"k": "v"})
        draft = AssistantMessageDraft(id="m1", parts=[{"type": "text", "text": "x"}, part])

        parts = draft.to_parts()
        assert parts[0] == {"type": "text", "text": "x"}
        assert parts[1]["state"] == "input-available"


# ============================================================================
# History Conversion
# ============================================================================


def _user(text: str) -> dict:
    return {"role": "user", "parts": [{"type": "text", "text": text}]}


class TestToAnthropicMessages:
    """Tests for to_anthropic_messages."""

    def test_plain_conversation(self):
        history = [
            _user("Hello"),
            {"role": "assistant", "parts": [{"type": "text", "text": "Hi there"}]},
            _user("How are you?"),
        ]
        assert to_anthropic_messages(history) == [
            {"role": "user", "content": [{"type": "text", "text": "Hello"}]},
            {"role": "assistant", "content": [{"type": "text", "text": "Hi there"}]},
            {"role": "user", "content": [{"type": "text", "text": "How are you?"}]},
        ]

    def test_completed_tool_call_becomes_tool_use_and_result(self):
        history = [
            _user("Send it"),
            {
                "role": "assistant",
                "parts": [
                    {"type": "text", "text": "Sending"},
                    {
                        "type": "tool-invocation",
                        "toolName": "gmailSendEmail",
                        "toolCallId": "c1",
                        "input": {"subject": "Hi"},
                        "state": "output-available",
                        "output": {"success": True},
                    },
                    {"type": "text", "text": "Sent!"},
                ],
            },
        ]
        messages = to_anthropic_messages(history)

        assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
        assert messages[1]["content"][1] == {
            "type": "tool_use",
            "id": "c1",
            "name": "gmailSendEmail",
            "input": {"subject": "Hi"},
        }
        result = messages[2]["content"][0]
        assert result["tool_use_id"] == "c1"
        assert result["is_error"] is False
        assert json.loads(result["content"]) == {"success": True}
        assert messages[3]["content"] == [{"type": "text", "text": "Sent!"}]

    def test_errored_tool_call_is_error_result(self):
        history = [
            _user("Do it"),
            {
                "role": "assistant",
                "parts": [{
                    "type": "tool-invocation",
                    "toolName": "a",
                    "toolCallId": "c1",
                    "input": {},
                    "state": "output-error",
                    "errorText": "failed",
                }],
            },
        ]
        messages = to_anthropic_messages(history)
        assert messages[2]["content"][0]["is_error"] is True
        assert messages[2]["content"][0]["content"] == "failed"

    def test_unfinished_tool_calls_and_reasoning_are_dropped(self):
        history = [
            _user("Hi"),
            {
                "role": "assistant",
                "parts": [
                    {"type": "reasoning", "text": "hmm"},
                    {
                        "type": "tool-invocation",
                        "toolName": "a",
                        "toolCallId": "c1",
                        "input": {},
                        "state": "input-available",
                    },
                    {"type": "text", "text": "Done"},
                ],
            },
        ]
        messages = to_anthropic_messages(history)
        assert messages[1] == {"role": "assistant", "content": [{"type": "text", "text": "Done"}]}

    def test_consecutive_user_turns_are_merged(self):
        messages = to_anthropic_messages([_user("one"), _user("two")])
        assert len(messages) == 1
        assert [b["text"] for b in messages[0]["content"]] == ["one", "two"]

    def test_file_part_is_described_as_text(self):
        history = [{
            "role": "user",
            "parts": [
                {"type": "file", "url": "https://files.example/a.png",
                 "mediaType": "image/png", "name": "a.png"},
                {"type": "text", "text": "What is this?"},
            ],
        }]
        content = to_anthropic_messages(history)[0]["content"]
        assert "a.png" in content[0]["text"]
        assert "image/png" in content[0]["text"]
        assert content[1]["text"] == "What is this?"
