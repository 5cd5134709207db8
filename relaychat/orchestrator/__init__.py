"""Agent orchestration: model loop, tool registry, and tool adapters."""
