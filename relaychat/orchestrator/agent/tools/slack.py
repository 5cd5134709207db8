"""Slack tools."""

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Slack"


class PostMessageInput(BaseModel):
    channel: str = Field(description="Channel id or name, e.g. 'C0123' or '#general'")
    text: str = Field(description="Message text (Slack mrkdwn)")
    thread_ts: str | None = Field(default=None, description="Parent message ts to reply in a thread")
    mrkdwn: bool = True


class ListChannelsInput(BaseModel):
    limit: int = Field(default=100, ge=1, le=1000)
    exclude_archived: bool = True
    types: str = Field(
        default="public_channel", description="Comma-separated channel types"
    )
    cursor: str | None = None


class FindChannelsInput(BaseModel):
    search_query: str = Field(description="Text to match in channel names")
    exclude_archived: bool = True


class ConversationHistoryInput(BaseModel):
    channel: str = Field(description="Channel id")
    limit: int = Field(default=50, ge=1, le=1000)
    oldest: str | None = Field(default=None, description="Only messages after this ts")
    latest: str | None = Field(default=None, description="Only messages before this ts")


class CreateChannelInput(BaseModel):
    name: str = Field(description="Channel name (lowercase, no spaces)")
    is_private: bool = False


class DeleteMessageInput(BaseModel):
    channel: str = Field(description="Channel id")
    ts: str = Field(description="Timestamp of the message to delete")


ACTIONS = [
    ActionSpec(
        name="slackSendMessage",
        description="Post a message to a Slack channel or thread.",
        input_model=PostMessageInput,
        action="SLACK_CHAT_POST_MESSAGE",
        success_message="Message sent successfully",
    ),
    ActionSpec(
        name="slackListAllChannels",
        description="List channels in the Slack workspace.",
        input_model=ListChannelsInput,
        action="SLACK_LIST_ALL_CHANNELS",
        success_message="Channels retrieved successfully",
    ),
    ActionSpec(
        name="slackFindChannels",
        description="Find Slack channels by name.",
        input_model=FindChannelsInput,
        action="SLACK_FIND_CHANNELS",
        success_message="Channels retrieved successfully",
    ),
    ActionSpec(
        name="slackFetchConversationHistory",
        description="Fetch recent messages from a Slack channel.",
        input_model=ConversationHistoryInput,
        action="SLACK_FETCH_CONVERSATION_HISTORY",
        success_message="Conversation history retrieved successfully",
    ),
    ActionSpec(
        name="slackCreateChannel",
        description="Create a public or private Slack channel.",
        input_model=CreateChannelInput,
        action="SLACK_CREATE_CHANNEL",
        success_message="Channel created successfully",
    ),
    ActionSpec(
        name="slackDeleteMessage",
        description="Delete a message from a Slack channel.",
        input_model=DeleteMessageInput,
        action="SLACK_DELETES_A_MESSAGE_FROM_A_CHAT",
        success_message="Message deleted successfully",
    ),
]


def register(registry) -> None:
    """Register Slack tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
