"""System prompt builder for the automation agent.

Builds the agent's system prompt from the integration catalog so the
capability list always matches what is actually registered. The reasoning
model runs without tools and gets a shorter variant that tells it so.

Example:
    prompt = build_system_prompt("chat-model")
"""

from datetime import UTC, datetime

from relaychat.services.entitlements import REASONING_MODEL_ID
from relaychat.services.integration_catalog import get_integrations

_GUIDELINES = """\
## Guidelines

You help users build and run automations across their connected services:
sequences of actions such as drafting and sending email, scheduling events,
creating documents and spreadsheets, posting to social accounts, and moving
data between services. Politely decline general chat, code development,
creative writing, and anything outside automation, and offer an
automation-related alternative instead.

- Break complex requests into sequential tool calls. Call one tool, read its
  result, then decide on the next call.
- Never invent credentials, email addresses, phone numbers, or ids. Ask the
  user for any data a tool needs that you do not have.
- If a tool reports that it failed, explain the cause in plain language and
  suggest an alternative or a retry.
- When you have finished, summarize what was done and which tools were used.

## Authentication

When a tool fails because an integration is not connected, call that
integration's `authenticate<Integration>` tool. Its result contains
`requiresAuth: true` and an `authUrl`; the user sees a connect button. Tell
the user authentication is required, include the URL, and ask them to retry
the original request once they have connected."""

_REASONING_NOTE = """\
## Mode

You are running in reasoning mode without access to tools. Think the
request through and describe the automation you would build, step by step,
and which integrations it needs. Tell the user to switch to the standard
model to execute it."""


def _build_integrations_section() -> str:
    lines = ["## Available Integrations", ""]
    for integration in get_integrations():
        suffix = "" if integration.requires_auth else " (no connection needed)"
        lines.append(f"- **{integration.name}**: {integration.description}{suffix}")
    return "\n".join(lines)


def build_system_prompt(model_id: str, now: datetime | None = None) -> str:
    """Build the system prompt for a model selection.

    Args:
        model_id: Client model selection ('chat-model' or
            'chat-model-reasoning').
        now: Override for the current time (tests).

    Returns:
        Complete system prompt string.
    """
    current = (now or datetime.now(UTC)).strftime("%A, %B %d, %Y %H:%M UTC")
    sections = [
        "You are an automation assistant. You execute multi-step workflows "
        "across third-party services on the user's behalf using the tools "
        "provided.",
        f"Current date and time: {current}",
        _build_integrations_section(),
        _GUIDELINES,
    ]
    if model_id == REASONING_MODEL_ID:
        sections.append(_REASONING_NOTE)
    return "\n\n".join(sections)
