"""Agent tool registration: canonical entrypoint.

Imports every integration module and assembles the process-wide
ToolRegistry the turn handler binds per turn.
"""

import logging

from relaychat.orchestrator.agent.tools import (
    facebook,
    gmail,
    google_calendar,
    google_docs,
    google_drive,
    google_sheets,
    linkedin,
    notion,
    search,
    slack,
    twitter,
)
from relaychat.orchestrator.agent.tools.core import (
    AuthenticateTool,
    ComposioTool,
    ToolContext,
    ToolOutcome,
    classify_tool_error,
)
from relaychat.orchestrator.agent.tools.registry import ToolRegistration, ToolRegistry

logger = logging.getLogger(__name__)

_INTEGRATION_MODULES = (
    gmail,
    google_calendar,
    google_docs,
    google_sheets,
    google_drive,
    notion,
    slack,
    twitter,
    linkedin,
    facebook,
    search,
)


def build_tool_registry() -> ToolRegistry:
    """Create a registry populated with every integration's tools.

    Returns:
        Loaded ToolRegistry.
    """
    registry = ToolRegistry()
    for module in _INTEGRATION_MODULES:
        module.register(registry)
    registry.mark_loaded()
    logger.info("Loaded %d tools", registry.size())
    return registry


__all__ = [
    "AuthenticateTool",
    "ComposioTool",
    "ToolContext",
    "ToolOutcome",
    "ToolRegistration",
    "ToolRegistry",
    "build_tool_registry",
    "classify_tool_error",
]
