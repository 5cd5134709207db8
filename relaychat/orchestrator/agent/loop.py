"""Multi-step agent loop.

Each step streams one model response into the writer, dispatches the
tool calls it requested in order, and feeds the results back as the next
request. The loop stops when a step requests no tools or the step cap is
reached.

Example:
    result = await run_agent_loop(
        provider=provider,
        model_id="chat-model",
        system=build_system_prompt("chat-model"),
        messages=to_anthropic_messages(history),
        tools=tools,
        active_tool_names=names,
        writer=writer,
    )
"""

import asyncio
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from relaychat.errors import ToolNotFoundError
from relaychat.orchestrator.agent.model_provider import (
    ModelProvider,
    ReasoningDelta,
    StepResult,
    TextDelta,
    ToolCall,
)
from relaychat.orchestrator.agent.tools.core import BoundTool, ToolOutcome
from relaychat.orchestrator.agent.writer import MessageStreamWriter
from relaychat.services.entitlements import REASONING_MODEL_ID
from relaychat.utils.redaction import redact_tool_input, sanitize_error_message

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGENT_STEPS = 15
DEFAULT_TOOL_CALL_TIMEOUT_SECONDS = 60.0


def get_max_agent_steps() -> int:
    """Step cap per turn from MAX_AGENT_STEPS."""
    try:
        return max(1, int(os.environ.get("MAX_AGENT_STEPS", DEFAULT_MAX_AGENT_STEPS)))
    except ValueError:
        logger.warning("Invalid MAX_AGENT_STEPS, using %d", DEFAULT_MAX_AGENT_STEPS)
        return DEFAULT_MAX_AGENT_STEPS


def get_tool_call_timeout() -> float:
    """Per-tool-call timeout in seconds from TOOL_CALL_TIMEOUT_SECONDS."""
    try:
        return float(
            os.environ.get("TOOL_CALL_TIMEOUT_SECONDS", DEFAULT_TOOL_CALL_TIMEOUT_SECONDS)
        )
    except ValueError:
        logger.warning(
            "Invalid TOOL_CALL_TIMEOUT_SECONDS, using %s",
            DEFAULT_TOOL_CALL_TIMEOUT_SECONDS,
        )
        return DEFAULT_TOOL_CALL_TIMEOUT_SECONDS


@dataclass
class LoopResult:
    """Summary of a finished agent loop.

    Attributes:
        steps: Number of model steps executed.
        stop_reason: Stop reason of the last step.
        hit_step_cap: True when the loop ended because of the step cap.
    """

    steps: int
    stop_reason: str | None
    hit_step_cap: bool = False


def active_tools_for_model(model_id: str, tool_names: list[str]) -> list[str]:
    """Tool names offered to the model for this selection.

    The reasoning model runs without tools.
    """
    if model_id == REASONING_MODEL_ID:
        return []
    return list(tool_names)


def _resolve_tool(tools: Mapping[str, BoundTool], name: str) -> BoundTool:
    tool = tools.get(name)
    if tool is None:
        raise ToolNotFoundError(name)
    return tool


def _tool_definition(tool: BoundTool) -> dict[str, Any]:
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.input_schema,
    }


async def dispatch_tool_call(
    tools: Mapping[str, BoundTool],
    active_tool_names: set[str],
    call: ToolCall,
    timeout: float,
) -> ToolOutcome:
    """Run one tool call and always return an outcome.

    Args:
        tools: Bound tools for the turn.
        active_tool_names: Names offered to the model this turn.
        call: Tool call requested by the model.
        timeout: Seconds before the call is abandoned.

    Returns:
        The tool's outcome, or an error outcome for unknown tools,
        timeouts and unexpected exceptions.
    """
    try:
        if call.name not in active_tool_names:
            raise ToolNotFoundError(call.name)
        tool = _resolve_tool(tools, call.name)
    except ToolNotFoundError as e:
        logger.warning("Model requested unknown tool %s", call.name)
        return ToolOutcome.failure("tool_not_found", str(e))

    try:
        return await asyncio.wait_for(tool.execute(call.input), timeout=timeout)
    except asyncio.TimeoutError:
        error = f"Tool '{call.name}' timed out after {timeout:g} seconds"
        logger.warning(error)
        return ToolOutcome.failure("tool_timeout", error)
    except Exception as e:
        logger.exception("Tool %s raised unexpectedly", call.name)
        return ToolOutcome.failure("tool_error", str(e) or type(e).__name__)


def _record_outcome(writer: MessageStreamWriter, call: ToolCall, outcome: ToolOutcome) -> None:
    if outcome.kind == "error":
        writer.tool_output_error(call.id, outcome.message)
        return
    writer.tool_output_available(call.id, outcome.to_model_payload())
    if outcome.kind == "auth_required":
        writer.auth_required(call.id, outcome.data)


def _log_step(
    step: int,
    result: StepResult,
    outcomes: list[tuple[ToolCall, ToolOutcome]],
) -> None:
    tool_calls = [
        {"name": call.name, "input": redact_tool_input(call.input)} for call, _ in outcomes
    ]
    tool_results = [
        {
            "name": call.name,
            "kind": outcome.kind,
            "code": outcome.code,
            "error": sanitize_error_message(outcome.error),
        }
        for call, outcome in outcomes
    ]
    logger.info(
        "agent_step step=%d text=%s tool_calls=%s tool_results=%s stop_reason=%s usage=%s",
        step,
        json.dumps(result.text[:200]),
        json.dumps(tool_calls, default=str),
        json.dumps(tool_results, default=str),
        result.stop_reason,
        json.dumps(result.usage),
    )


async def run_agent_loop(
    *,
    provider: ModelProvider,
    model_id: str,
    system: str,
    messages: list[dict[str, Any]],
    tools: Mapping[str, BoundTool],
    active_tool_names: list[str],
    writer: MessageStreamWriter,
    max_steps: int | None = None,
    tool_timeout: float | None = None,
) -> LoopResult:
    """Run model steps until no tool is requested or the step cap is hit.

    Tool calls within a step run sequentially in model order. Tool
    failures become error results the model sees; they never end the loop.

    Args:
        provider: Model provider.
        model_id: Client model selection ('chat-model' or
            'chat-model-reasoning').
        system: System prompt.
        messages: Conversation in Anthropic format. Extended in place with
            each step's assistant content and tool results.
        tools: Bound tools for the turn.
        active_tool_names: Names offered to the model.
        writer: Event writer for the assistant message.
        max_steps: Step cap. Defaults to MAX_AGENT_STEPS.
        tool_timeout: Per-tool-call timeout. Defaults to
            TOOL_CALL_TIMEOUT_SECONDS.

    Returns:
        LoopResult describing how the loop ended.

    Raises:
        RuntimeError: If the provider finishes a step without a result.
    """
    if max_steps is None:
        max_steps = get_max_agent_steps()
    if tool_timeout is None:
        tool_timeout = get_tool_call_timeout()

    active = [name for name in active_tool_names if name in tools]
    active_set = set(active)
    tool_defs = [_tool_definition(tools[name]) for name in active]

    step = 0
    stop_reason: str | None = None
    while step < max_steps:
        step += 1
        writer.start_step()

        result: StepResult | None = None
        async for event in provider.stream_step(
            model_id=model_id,
            system=system,
            messages=messages,
            tools=tool_defs,
        ):
            if isinstance(event, TextDelta):
                writer.text_delta(event.text)
            elif isinstance(event, ReasoningDelta):
                writer.reasoning_delta(event.text)
            elif isinstance(event, StepResult):
                result = event
        if result is None:
            raise RuntimeError("Model step ended without a result")
        stop_reason = result.stop_reason

        outcomes: list[tuple[ToolCall, ToolOutcome]] = []
        for call in result.tool_calls:
            writer.tool_input_available(call.id, call.name, call.input)
            outcome = await dispatch_tool_call(tools, active_set, call, tool_timeout)
            _record_outcome(writer, call, outcome)
            outcomes.append((call, outcome))

        writer.finish_step()
        _log_step(step, result, outcomes)

        if not result.tool_calls:
            return LoopResult(steps=step, stop_reason=stop_reason)

        messages.append({"role": "assistant", "content": result.content})
        messages.append({
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": call.id,
                    "content": json.dumps(outcome.to_model_payload(), default=str),
                    "is_error": outcome.is_error,
                }
                for call, outcome in outcomes
            ],
        })

    logger.info("Agent loop stopped at step cap (%d)", max_steps)
    return LoopResult(steps=step, stop_reason=stop_reason, hit_step_cap=True)
