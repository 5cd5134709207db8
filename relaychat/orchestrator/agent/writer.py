"""Queue-backed writer for agent turn events.

The agent loop and tools push events through a MessageStreamWriter; the
turn handler drains its queue into the output channel. The writer also
accumulates the assistant message parts that are persisted when the turn
finishes.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from relaychat.orchestrator.agent.messages import (
    AssistantMessageDraft,
    ToolInvocationPart,
)

DONE_MARKER = "[DONE]"


class MessageStreamWriter:
    """Event sink for one assistant message.

    Events are dicts with a ``type`` key, serialized to JSON when drained.
    A ``None`` on the queue marks the end of the stream.

    Args:
        message_id: Id of the assistant message being produced.
    """

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        self.draft = AssistantMessageDraft(id=message_id)
        self._queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._tool_parts: dict[str, ToolInvocationPart] = {}
        self._open_text: dict[str, Any] | None = None
        self._open_reasoning: dict[str, Any] | None = None
        self._closed = False

    def emit(self, event: dict[str, Any]) -> None:
        """Push a raw event to the stream."""
        if self._closed:
            return
        self._queue.put_nowait(event)

    def start(self) -> None:
        self.emit({"type": "start", "messageId": self.message_id})

    def start_step(self) -> None:
        self._open_text = None
        self._open_reasoning = None
        self.emit({"type": "start-step"})

    def text_delta(self, text: str) -> None:
        if not text:
            return
        if self._open_text is None:
            self._open_text = {"type": "text", "text": ""}
            self.draft.parts.append(self._open_text)
        self._open_text["text"] += text
        self._open_reasoning = None
        self.emit({"type": "text-delta", "delta": text})

    def reasoning_delta(self, text: str) -> None:
        if not text:
            return
        if self._open_reasoning is None:
            self._open_reasoning = {"type": "reasoning", "text": ""}
            self.draft.parts.append(self._open_reasoning)
        self._open_reasoning["text"] += text
        self.emit({"type": "reasoning-delta", "delta": text})

    def tool_input_available(self, tool_call_id: str, tool_name: str, tool_input: Any) -> None:
        part = ToolInvocationPart(tool_name=tool_name, tool_call_id=tool_call_id)
        part.advance("input-available", input=tool_input)
        self._tool_parts[tool_call_id] = part
        self.draft.parts.append(part)
        self._open_text = None
        self.emit({
            "type": "tool-input-available",
            "toolCallId": tool_call_id,
            "toolName": tool_name,
            "input": tool_input,
        })

    def tool_output_available(self, tool_call_id: str, output: Any) -> None:
        self._tool_parts[tool_call_id].advance("output-available", output=output)
        self.emit({"type": "tool-output-available", "toolCallId": tool_call_id, "output": output})

    def tool_output_error(self, tool_call_id: str, error_text: str) -> None:
        self._tool_parts[tool_call_id].advance("output-error", error_text=error_text)
        self.emit({"type": "tool-output-error", "toolCallId": tool_call_id, "errorText": error_text})

    def auth_required(self, tool_call_id: str, data: dict[str, Any]) -> None:
        """Emit the clickable authorization affordance for a tool call."""
        self.emit({"type": "data-auth-required", "toolCallId": tool_call_id, "data": data})

    def finish_step(self) -> None:
        self.emit({"type": "finish-step"})

    def finish(self) -> None:
        self.emit({"type": "finish"})

    def error(self, error_text: str) -> None:
        self.emit({"type": "error", "errorText": error_text})

    def close(self) -> None:
        """Mark the end of the stream. Later events are dropped."""
        if not self._closed:
            self._queue.put_nowait(None)
            self._closed = True

    def parts(self) -> list[dict[str, Any]]:
        """Accumulated assistant parts, serialized for persistence."""
        return self.draft.to_parts()

    async def drain(self) -> AsyncIterator[str]:
        """Yield serialized events until close(), then the done marker."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield json.dumps(event, default=str)
        yield DONE_MARKER
