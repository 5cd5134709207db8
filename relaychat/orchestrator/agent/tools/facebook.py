"""Facebook Page tools."""

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Facebook"


class CreatePostInput(BaseModel):
    page_id: str = Field(description="Facebook Page id")
    message: str = Field(description="Post text")
    link: str | None = Field(default=None, description="URL to attach")
    published: bool = Field(default=True, description="Publish now (false keeps it unpublished)")
    scheduled_publish_time: int | None = Field(
        default=None, description="Unix timestamp to publish at; requires published=false"
    )


class CreatePhotoPostInput(BaseModel):
    page_id: str = Field(description="Facebook Page id")
    url: str = Field(description="Public URL of the photo")
    message: str | None = Field(default=None, description="Caption")
    published: bool = True


class UpdatePostInput(BaseModel):
    post_id: str = Field(description="Post id ('{page_id}_{post_id}')")
    message: str = Field(description="New post text")


class DeletePostInput(BaseModel):
    post_id: str = Field(description="Post id to delete")


class PageDetailsInput(BaseModel):
    page_id: str = Field(description="Facebook Page id")
    fields: str = Field(
        default="id,name,about,category,fan_count,link",
        description="Comma-separated fields to return",
    )


ACTIONS = [
    ActionSpec(
        name="facebookCreatePost",
        description="Publish or schedule a text post on a Facebook Page.",
        input_model=CreatePostInput,
        action="FACEBOOK_CREATE_POST",
        success_message="Facebook post created successfully",
    ),
    ActionSpec(
        name="facebookCreatePhotoPost",
        description="Publish a photo post on a Facebook Page.",
        input_model=CreatePhotoPostInput,
        action="FACEBOOK_CREATE_PHOTO_POST",
        success_message="Facebook photo post created successfully",
    ),
    ActionSpec(
        name="facebookUpdatePost",
        description="Edit the text of an existing Facebook Page post.",
        input_model=UpdatePostInput,
        action="FACEBOOK_UPDATE_POST",
        success_message="Facebook post updated successfully",
    ),
    ActionSpec(
        name="facebookDeletePost",
        description="Delete a Facebook Page post.",
        input_model=DeletePostInput,
        action="FACEBOOK_DELETE_POST",
        success_message="Facebook post deleted successfully",
    ),
    ActionSpec(
        name="facebookGetPageDetails",
        description="Get details for a Facebook Page.",
        input_model=PageDetailsInput,
        action="FACEBOOK_GET_PAGE_DETAILS",
        success_message="Page details retrieved successfully",
    ),
]


def register(registry) -> None:
    """Register Facebook tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
