"""X (Twitter) tools."""

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "X (Twitter)"


class CreatePostInput(BaseModel):
    text: str = Field(max_length=280, description="Post text (max 280 characters)")
    reply_in_reply_to_tweet_id: str | None = Field(
        default=None, description="Post id to reply to"
    )
    quote_tweet_id: str | None = Field(default=None, description="Post id to quote")


class EmptyLookup(BaseModel):
    pass


class RecentSearchInput(BaseModel):
    query: str = Field(description="X search query, e.g. 'from:nasa has:media'")
    max_results: int = Field(default=10, ge=10, le=100)
    start_time: str | None = Field(default=None, description="RFC3339 lower bound")
    end_time: str | None = Field(default=None, description="RFC3339 upper bound")


class NewDmInput(BaseModel):
    participant_id: str = Field(description="User id of the recipient")
    text: str = Field(description="Message text")


ACTIONS = [
    ActionSpec(
        name="twitterCreatePost",
        description="Publish a post on X (Twitter), optionally replying to or quoting another post.",
        input_model=CreatePostInput,
        action="TWITTER_CREATION_OF_A_POST",
        success_message="Post published successfully",
    ),
    ActionSpec(
        name="twitterUserLookupMe",
        description="Get the authenticated X (Twitter) user's profile.",
        input_model=EmptyLookup,
        action="TWITTER_USER_LOOKUP_ME",
        success_message="Profile retrieved successfully",
    ),
    ActionSpec(
        name="twitterFullArchiveSearch",
        description="Search posts on X (Twitter).",
        input_model=RecentSearchInput,
        action="TWITTER_FULL_ARCHIVE_SEARCH",
        success_message="Posts retrieved successfully",
    ),
    ActionSpec(
        name="twitterCreateDmConversation",
        description="Send a direct message to a user on X (Twitter).",
        input_model=NewDmInput,
        action="TWITTER_CREATE_A_NEW_DM_CONVERSATION",
        success_message="Direct message sent successfully",
    ),
]


def register(registry) -> None:
    """Register X (Twitter) tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
