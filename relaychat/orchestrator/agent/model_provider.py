"""Model provider abstraction over the Anthropic Messages API.

One call to stream_step() performs a single model step: it streams text
and reasoning deltas as they arrive and finishes with a StepResult that
carries the tool calls the model requested.
"""

import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from relaychat.services.entitlements import REASONING_MODEL_ID

logger = logging.getLogger(__name__)

DEFAULT_CHAT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_REASONING_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 4096
REASONING_BUDGET_TOKENS = 2048


@dataclass
class TextDelta:
    """Incremental assistant text."""

    text: str


@dataclass
class ReasoningDelta:
    """Incremental reasoning (extended thinking) text."""

    text: str


@dataclass
class ToolCall:
    """Tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any]


@dataclass
class StepResult:
    """Outcome of one model step.

    Attributes:
        text: Full assistant text produced in the step.
        tool_calls: Tool calls requested, in model order.
        stop_reason: Provider stop reason (e.g. 'end_turn', 'tool_use').
        usage: Token usage counters.
        content: Assistant content blocks to replay in the next request.
    """

    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)
    content: list[dict[str, Any]] = field(default_factory=list)


StepEvent = TextDelta | ReasoningDelta | StepResult


class ModelProvider(Protocol):
    """Streams one model step at a time."""

    def stream_step(
        self,
        *,
        model_id: str,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StepEvent]:
        ...


def resolve_model(model_id: str) -> tuple[str, bool]:
    """Map a client model selection to a provider model name.

    Args:
        model_id: 'chat-model' or 'chat-model-reasoning'.

    Returns:
        Tuple of (provider model name, extended thinking enabled).
    """
    if model_id == REASONING_MODEL_ID:
        return os.environ.get("REASONING_MODEL", DEFAULT_REASONING_MODEL), True
    return os.environ.get("CHAT_MODEL", DEFAULT_CHAT_MODEL), False


def _block_to_param(block: Any) -> dict[str, Any] | None:
    kind = getattr(block, "type", None)
    if kind == "text":
        return {"type": "text", "text": block.text}
    if kind == "tool_use":
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    if kind == "thinking":
        return {"type": "thinking", "thinking": block.thinking, "signature": block.signature}
    if kind == "redacted_thinking":
        return {"type": "redacted_thinking", "data": block.data}
    return None


class AnthropicModelProvider:
    """ModelProvider backed by AsyncAnthropic streaming.

    Args:
        client: Optional AsyncAnthropic instance. Created lazily from
            ANTHROPIC_API_KEY when omitted.
        max_tokens: Output token cap per step.
    """

    def __init__(self, client: Any = None, max_tokens: int = DEFAULT_MAX_TOKENS) -> None:
        self._client = client
        self._max_tokens = max_tokens

    def _get_client(self) -> Any:
        if self._client is None:
            from anthropic import AsyncAnthropic

            self._client = AsyncAnthropic()
        return self._client

    async def stream_step(
        self,
        *,
        model_id: str,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
    ) -> AsyncIterator[StepEvent]:
        model, thinking = resolve_model(model_id)
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": self._max_tokens,
            "system": system,
            "messages": messages,
        }
        if tools:
            kwargs["tools"] = tools
        if thinking:
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": REASONING_BUDGET_TOKENS}
            kwargs["max_tokens"] = self._max_tokens + REASONING_BUDGET_TOKENS

        async with self._get_client().messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type != "content_block_delta":
                    continue
                delta = event.delta
                if delta.type == "text_delta":
                    yield TextDelta(delta.text)
                elif delta.type == "thinking_delta":
                    yield ReasoningDelta(delta.thinking)
            final = await stream.get_final_message()

        content = [p for p in (_block_to_param(b) for b in final.content) if p is not None]
        yield StepResult(
            text="".join(b["text"] for b in content if b["type"] == "text"),
            tool_calls=[
                ToolCall(id=b["id"], name=b["name"], input=dict(b["input"] or {}))
                for b in content
                if b["type"] == "tool_use"
            ],
            stop_reason=final.stop_reason,
            usage={
                "input_tokens": final.usage.input_tokens,
                "output_tokens": final.usage.output_tokens,
            },
            content=content,
        )
