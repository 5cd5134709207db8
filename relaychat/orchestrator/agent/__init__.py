"""Agent layer: model provider, tool dispatch, and the multi-step loop."""

from relaychat.orchestrator.agent.loop import LoopResult, run_agent_loop
from relaychat.orchestrator.agent.model_provider import AnthropicModelProvider, ModelProvider
from relaychat.orchestrator.agent.writer import DONE_MARKER, MessageStreamWriter

__all__ = [
    "AnthropicModelProvider",
    "DONE_MARKER",
    "LoopResult",
    "MessageStreamWriter",
    "ModelProvider",
    "run_agent_loop",
]
