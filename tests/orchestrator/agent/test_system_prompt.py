"""Tests for the system prompt builder."""

from datetime import UTC, datetime

from relaychat.orchestrator.agent.system_prompt import build_system_prompt

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)


def test_lists_every_integration():
    prompt = build_system_prompt("chat-model", now=FIXED_NOW)
    for name in ("Gmail", "Google Calendar", "Notion", "Slack", "X (Twitter)"):
        assert f"**{name}**" in prompt
    assert "Composio Search**: Web, news, and research search (no connection needed)" in prompt


def test_includes_current_time():
    prompt = build_system_prompt("chat-model", now=FIXED_NOW)
    assert "Friday, March 14, 2025 09:30 UTC" in prompt


def test_reasoning_variant_mentions_missing_tools():
    standard = build_system_prompt("chat-model", now=FIXED_NOW)
    reasoning = build_system_prompt("chat-model-reasoning", now=FIXED_NOW)
    assert "without access to tools" in reasoning
    assert "without access to tools" not in standard
