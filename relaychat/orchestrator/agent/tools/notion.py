"""Notion tools."""

from typing import Any

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Notion"


class SearchPageInput(BaseModel):
    query: str = Field(default="", description="Text to search in page titles")
    page_size: int = Field(default=10, ge=1, le=100)


class CreatePageInput(BaseModel):
    parent_id: str = Field(description="Parent page id")
    title: str = Field(description="Title of the new page")
    markdown: str | None = Field(default=None, description="Page body in Markdown")
    icon: str | None = Field(default=None, description="Emoji icon")


class AddPageContentInput(BaseModel):
    parent_block_id: str = Field(description="Page or block id to append to")
    content_blocks: list[dict[str, Any]] = Field(
        description="Blocks to append, e.g. [{'content': 'Hello', 'block_property': 'paragraph'}]"
    )


class FetchDataInput(BaseModel):
    fetch_type: str = Field(
        default="pages", description="'pages', 'databases', or 'all'"
    )
    query: str | None = None
    page_size: int = Field(default=25, ge=1, le=100)


class QueryDatabaseInput(BaseModel):
    database_id: str = Field(description="Database id")
    page_size: int = Field(default=25, ge=1, le=100)
    sorts: list[dict[str, Any]] | None = Field(
        default=None, description="Sort specs, e.g. [{'property_name': 'Due', 'ascending': true}]"
    )
    start_cursor: str | None = None


class UpdatePageInput(BaseModel):
    page_id: str = Field(description="Page id")
    title: str | None = None
    archived: bool | None = Field(default=None, description="Archive (true) or restore the page")
    properties: dict[str, Any] | None = None


ACTIONS = [
    ActionSpec(
        name="notionSearchNotionPage",
        description="Search Notion pages by title.",
        input_model=SearchPageInput,
        action="NOTION_SEARCH_NOTION_PAGE",
        success_message="Pages retrieved successfully",
    ),
    ActionSpec(
        name="notionCreateNotionPage",
        description="Create a Notion page under a parent page.",
        input_model=CreatePageInput,
        action="NOTION_CREATE_NOTION_PAGE",
        success_message="Page created successfully",
    ),
    ActionSpec(
        name="notionAddMultiplePageContent",
        description="Append multiple content blocks to a Notion page.",
        input_model=AddPageContentInput,
        action="NOTION_ADD_MULTIPLE_PAGE_CONTENT",
        success_message="Content added successfully",
    ),
    ActionSpec(
        name="notionFetchData",
        description="List pages and databases the integration can access.",
        input_model=FetchDataInput,
        action="NOTION_FETCH_DATA",
        success_message="Data retrieved successfully",
    ),
    ActionSpec(
        name="notionQueryDatabase",
        description="Query rows of a Notion database with optional sorting.",
        input_model=QueryDatabaseInput,
        action="NOTION_QUERY_DATABASE",
        success_message="Database queried successfully",
    ),
    ActionSpec(
        name="notionUpdatePage",
        description="Update a Notion page's title, properties, or archived state.",
        input_model=UpdatePageInput,
        action="NOTION_UPDATE_PAGE",
        success_message="Page updated successfully",
    ),
]


def register(registry) -> None:
    """Register Notion tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
