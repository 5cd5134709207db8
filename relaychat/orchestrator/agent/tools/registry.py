"""Tool registry: name -> factory map populated once at startup.

Integration modules register a factory per tool. Each turn instantiates
every factory with that turn's ToolContext to get bound tools. After
startup the registry is only read, so it is shared across turns without
locking.

Example:
    registry = build_tool_registry()
    tools, names = registry.instantiate_all(context)
    outcome = await tools["gmailSendEmail"].execute({...})
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from relaychat.errors import ToolNotFoundError
from relaychat.orchestrator.agent.tools.core import BoundTool, ToolContext

logger = logging.getLogger(__name__)

ToolFactory = Callable[[ToolContext], BoundTool]


@dataclass(frozen=True)
class ToolRegistration:
    """One registered tool.

    Attributes:
        name: Tool name offered to the model.
        factory: Builds a bound tool from a turn context.
        integration_name: Catalog integration the tool belongs to.
        external_action: Backend action slug (or the auth tool marker).
    """

    name: str
    factory: ToolFactory
    integration_name: str
    external_action: str


class ToolRegistry:
    """Single-owner map of tool name to registration."""

    def __init__(self) -> None:
        self._registrations: dict[str, ToolRegistration] = {}
        self._loaded = False

    def register(
        self,
        name: str,
        factory: ToolFactory,
        integration_name: str,
        external_action: str,
    ) -> None:
        """Insert a registration. A later registration of the same name wins."""
        if name in self._registrations:
            logger.debug("Replacing tool registration %s", name)
        self._registrations[name] = ToolRegistration(
            name=name,
            factory=factory,
            integration_name=integration_name,
            external_action=external_action,
        )

    def instantiate_all(self, context: ToolContext) -> tuple[dict[str, BoundTool], list[str]]:
        """Bind every registered tool to a turn context.

        Args:
            context: Current turn's ToolContext.

        Returns:
            Tuple of (name -> bound tool, tool names in registration order).
        """
        tools = {name: reg.factory(context) for name, reg in self._registrations.items()}
        return tools, list(tools)

    def snapshot(self) -> Mapping[str, ToolRegistration]:
        """Read-only view of current registrations."""
        return MappingProxyType(self._registrations)

    def resolve(self, name: str) -> ToolRegistration:
        """Look up a registration by name.

        Raises:
            ToolNotFoundError: If the name is not registered.
        """
        registration = self._registrations.get(name)
        if registration is None:
            raise ToolNotFoundError(name)
        return registration

    def by_integration(self, integration_name: str) -> list[ToolRegistration]:
        return [
            reg
            for reg in self._registrations.values()
            if reg.integration_name == integration_name
        ]

    def names(self) -> list[str]:
        return list(self._registrations)

    def is_loaded(self) -> bool:
        return self._loaded

    def mark_loaded(self, loaded: bool = True) -> None:
        self._loaded = loaded

    def size(self) -> int:
        return len(self._registrations)

    def __contains__(self, name: Any) -> bool:
        return name in self._registrations
