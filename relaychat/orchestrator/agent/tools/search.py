"""Composio Search tools. No user connection is required."""

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration
from relaychat.services.integration_catalog import SEARCH_INTEGRATION_NAME


class SearchInput(BaseModel):
    query: str = Field(description="Search query")


class TavilySearchInput(BaseModel):
    query: str = Field(description="Search query")
    max_results: int = Field(default=5, ge=1, le=20)
    search_depth: str = Field(default="basic", description="'basic' or 'advanced'")
    include_answer: bool = Field(default=False, description="Include a synthesized answer")


class SimilarLinksInput(BaseModel):
    url: str = Field(description="URL to find similar pages for")
    num_results: int = Field(default=10, ge=1, le=50)


class NewsSearchInput(BaseModel):
    query: str = Field(description="News search query")
    when: str | None = Field(default=None, description="Recency filter, e.g. 'd', 'w', 'm'")


ACTIONS = [
    ActionSpec(
        name="composioSearch",
        description="Search the web and return ranked results.",
        input_model=SearchInput,
        action="COMPOSIO_SEARCH_SEARCH",
        success_message="Search completed successfully",
    ),
    ActionSpec(
        name="composioTavilySearch",
        description="Research-oriented web search with optional synthesized answer.",
        input_model=TavilySearchInput,
        action="COMPOSIO_SEARCH_TAVILY_SEARCH",
        success_message="Search completed successfully",
    ),
    ActionSpec(
        name="composioSimilarLinks",
        description="Find pages similar to a given URL.",
        input_model=SimilarLinksInput,
        action="COMPOSIO_SEARCH_EXA_SIMILARLINK",
        success_message="Similar links retrieved successfully",
    ),
    ActionSpec(
        name="composioNewsSearch",
        description="Search recent news articles.",
        input_model=NewsSearchInput,
        action="COMPOSIO_SEARCH_NEWS_SEARCH",
        success_message="News retrieved successfully",
    ),
]


def register(registry) -> None:
    """Register search tools (no authentication tool)."""
    register_integration(registry, SEARCH_INTEGRATION_NAME, ACTIONS, with_auth=False)
