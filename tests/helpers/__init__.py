"""Test helper fakes for model, Redis, and Composio backends."""

from tests.helpers.fakes import (
    FakeComposio,
    FakeModelProvider,
    FakeRedis,
    FakeTool,
    text_step,
    tool_step,
)

__all__ = [
    "FakeComposio",
    "FakeModelProvider",
    "FakeRedis",
    "FakeTool",
    "text_step",
    "tool_step",
]
