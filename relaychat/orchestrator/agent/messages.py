"""Chat message parts and conversion to Anthropic message format.

Persisted messages hold an ordered list of tagged parts:
- ``text``: ``{"type": "text", "text": ...}``
- ``reasoning``: ``{"type": "reasoning", "text": ...}``
- ``file``: ``{"type": "file", "url": ..., "mediaType": ..., "name": ...}``
- ``tool-invocation``: see ToolInvocationPart

Tool invocation parts move forward through a fixed state path and never
go back.
"""

import json
from dataclasses import dataclass, field
from typing import Any

TOOL_STATES = (
    "input-streaming",
    "input-available",
    "output-available",
    "output-error",
)

_TERMINAL_STATES = frozenset({"output-available", "output-error"})

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "input-streaming": frozenset({"input-available"}),
    "input-available": frozenset({"output-available", "output-error"}),
    "output-available": frozenset(),
    "output-error": frozenset(),
}


class InvalidToolStateTransition(ValueError):
    """Raised when a tool invocation part is moved backwards or sideways."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move tool invocation from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


@dataclass
class ToolInvocationPart:
    """One tool call and its lifecycle within an assistant message.

    Attributes:
        tool_name: Registered tool name.
        tool_call_id: Model-assigned call id.
        input: Input payload supplied by the model.
        state: Current lifecycle state.
        output: Tool output payload once available.
        error_text: Failure text once errored.
    """

    tool_name: str
    tool_call_id: str
    input: Any = None
    state: str = "input-streaming"
    output: Any = None
    error_text: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether the part has reached output-available or output-error."""
        return self.state in _TERMINAL_STATES

    def advance(
        self,
        state: str,
        *,
        input: Any = None,
        output: Any = None,
        error_text: str | None = None,
    ) -> None:
        """Move to the next state.

        Args:
            state: Target state.
            input: Final input payload (for input-available).
            output: Output payload (for output-available).
            error_text: Failure text (for output-error).

        Raises:
            InvalidToolStateTransition: If the transition is not forward
                along the allowed path.
        """
        if state not in _ALLOWED_TRANSITIONS.get(self.state, frozenset()):
            raise InvalidToolStateTransition(self.state, state)
        self.state = state
        if input is not None:
            self.input = input
        if state == "output-available":
            self.output = output
        elif state == "output-error":
            self.error_text = error_text

    def to_dict(self) -> dict[str, Any]:
        """Serialize as a persisted message part."""
        part: dict[str, Any] = {
            "type": "tool-invocation",
            "toolName": self.tool_name,
            "toolCallId": self.tool_call_id,
            "input": self.input,
            "state": self.state,
        }
        if self.state == "output-available":
            part["output"] = self.output
        elif self.state == "output-error":
            part["errorText"] = self.error_text
        return part


def _user_blocks(parts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for part in parts:
        kind = part.get("type")
        if kind == "text" and part.get("text"):
            blocks.append({"type": "text", "text": part["text"]})
        elif kind == "file":
            name = part.get("name") or part.get("filename") or "file"
            blocks.append({
                "type": "text",
                "text": f"[Attached file: {name} ({part.get('mediaType', 'unknown')}) {part.get('url', '')}]",
            })
    return blocks


def _append(messages: list[dict[str, Any]], role: str, blocks: list[dict[str, Any]]) -> None:
    if not blocks:
        return
    if messages and messages[-1]["role"] == role:
        messages[-1]["content"].extend(blocks)
    else:
        messages.append({"role": role, "content": list(blocks)})


def to_anthropic_messages(history: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert persisted chat messages into Anthropic Messages API input.

    Completed tool invocations become ``tool_use`` blocks followed by a
    user turn carrying the matching ``tool_result`` blocks. Reasoning parts
    and unfinished tool calls are dropped. Consecutive turns with the same
    role are merged so roles alternate.

    Args:
        history: Messages as returned by ConversationService.get_messages.

    Returns:
        List of ``{"role", "content"}`` dicts.
    """
    result: list[dict[str, Any]] = []
    for message in history:
        parts = message.get("parts") or []
        if message.get("role") == "user":
            _append(result, "user", _user_blocks(parts))
            continue

        assistant_blocks: list[dict[str, Any]] = []
        tool_results: list[dict[str, Any]] = []
        for part in parts:
            kind = part.get("type")
            if kind == "text" and part.get("text"):
                if tool_results:
                    _append(result, "assistant", assistant_blocks)
                    _append(result, "user", tool_results)
                    assistant_blocks, tool_results = [], []
                assistant_blocks.append({"type": "text", "text": part["text"]})
            elif kind == "tool-invocation" and part.get("state") in _TERMINAL_STATES:
                assistant_blocks.append({
                    "type": "tool_use",
                    "id": part["toolCallId"],
                    "name": part["toolName"],
                    "input": part.get("input") or {},
                })
                is_error = part["state"] == "output-error"
                content = part.get("errorText") if is_error else part.get("output")
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": part["toolCallId"],
                    "content": content if isinstance(content, str) else json.dumps(content, default=str),
                    "is_error": is_error,
                })
        _append(result, "assistant", assistant_blocks)
        _append(result, "user", tool_results)
    return result


@dataclass
class AssistantMessageDraft:
    """In-flight assistant message accumulating parts while streaming."""

    id: str
    parts: list[Any] = field(default_factory=list)

    def to_parts(self) -> list[dict[str, Any]]:
        """Serialize accumulated parts for persistence."""
        return [p.to_dict() if isinstance(p, ToolInvocationPart) else dict(p) for p in self.parts]
