"""LinkedIn tools."""

from typing import Literal

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "LinkedIn"


class CreatePostInput(BaseModel):
    author: str = Field(
        description="Author URN, e.g. 'urn:li:person:abc123'. Use linkedinGetMyInfo to find it."
    )
    commentary: str = Field(description="Post text")
    visibility: Literal["PUBLIC", "CONNECTIONS", "LOGGED_IN"] = "PUBLIC"
    lifecycleState: Literal["PUBLISHED", "DRAFT"] = "PUBLISHED"


class MyInfoInput(BaseModel):
    pass


class DeletePostInput(BaseModel):
    share_id: str = Field(description="URN or id of the post to delete")


class CompanyInfoInput(BaseModel):
    role: str = Field(default="ADMINISTRATOR", description="Role filter for organizations")
    count: int = Field(default=10, ge=1, le=100)


ACTIONS = [
    ActionSpec(
        name="linkedinCreatePost",
        description="Create a LinkedIn post on behalf of the authenticated member.",
        input_model=CreatePostInput,
        action="LINKEDIN_CREATE_LINKED_IN_POST",
        success_message="LinkedIn post created successfully",
    ),
    ActionSpec(
        name="linkedinGetMyInfo",
        description="Get the authenticated LinkedIn member's profile, including the author URN.",
        input_model=MyInfoInput,
        action="LINKEDIN_GET_MY_INFO",
        success_message="Profile retrieved successfully",
    ),
    ActionSpec(
        name="linkedinDeletePost",
        description="Delete a LinkedIn post.",
        input_model=DeletePostInput,
        action="LINKEDIN_DELETE_LINKED_IN_POST",
        success_message="LinkedIn post deleted successfully",
    ),
    ActionSpec(
        name="linkedinGetCompanyInfo",
        description="List organizations the member administers.",
        input_model=CompanyInfoInput,
        action="LINKEDIN_GET_COMPANY_INFO",
        success_message="Company info retrieved successfully",
    ),
]


def register(registry) -> None:
    """Register LinkedIn tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
