"""Google Drive tools."""

from typing import Literal

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Google Drive"


class FindFileInput(BaseModel):
    q: str | None = Field(
        default=None,
        description="Drive query, e.g. \"name contains 'report' and mimeType != 'application/vnd.google-apps.folder'\"",
    )
    page_size: int = Field(default=20, ge=1, le=1000)
    folder_id: str | None = Field(default=None, description="Restrict to this folder")
    page_token: str | None = None


class FindFolderInput(BaseModel):
    name_exact: str | None = Field(default=None, description="Exact folder name")
    name_contains: str | None = Field(default=None, description="Substring of folder name")
    parent_folder_id: str | None = None


class CreateFolderInput(BaseModel):
    folder_name: str = Field(description="Name of the new folder")
    parent_id: str | None = Field(default=None, description="Parent folder id")


class CreateFileFromTextInput(BaseModel):
    file_name: str = Field(description="Name of the new file")
    text_content: str = Field(description="Plain-text content")
    mime_type: str = Field(
        default="text/plain",
        description="Target MIME type, e.g. 'application/vnd.google-apps.document'",
    )
    parent_id: str | None = None


class GetFileMetadataInput(BaseModel):
    file_id: str = Field(description="File id")


class ShareFileInput(BaseModel):
    file_id: str = Field(description="File or folder id")
    role: Literal["reader", "commenter", "writer", "owner"] = "reader"
    type: Literal["user", "group", "domain", "anyone"] = "user"
    email_address: str | None = Field(
        default=None, description="Grantee email, required for user and group"
    )
    domain: str | None = None


class DeleteFileInput(BaseModel):
    file_id: str = Field(description="File or folder id to delete permanently")


ACTIONS = [
    ActionSpec(
        name="googleDriveFindFile",
        description="Search Google Drive files with a Drive query.",
        input_model=FindFileInput,
        action="GOOGLEDRIVE_FIND_FILE",
        success_message="Files retrieved successfully",
    ),
    ActionSpec(
        name="googleDriveFindFolder",
        description="Find Google Drive folders by name.",
        input_model=FindFolderInput,
        action="GOOGLEDRIVE_FIND_FOLDER",
        success_message="Folders retrieved successfully",
    ),
    ActionSpec(
        name="googleDriveCreateFolder",
        description="Create a folder in Google Drive.",
        input_model=CreateFolderInput,
        action="GOOGLEDRIVE_CREATE_FOLDER",
        success_message="Folder created successfully",
    ),
    ActionSpec(
        name="googleDriveCreateFileFromText",
        description="Create a Google Drive file from plain text.",
        input_model=CreateFileFromTextInput,
        action="GOOGLEDRIVE_CREATE_FILE_FROM_TEXT",
        success_message="File created successfully",
    ),
    ActionSpec(
        name="googleDriveGetFileMetadata",
        description="Get metadata for a Google Drive file.",
        input_model=GetFileMetadataInput,
        action="GOOGLEDRIVE_GET_FILE_METADATA",
        success_message="File metadata retrieved successfully",
    ),
    ActionSpec(
        name="googleDriveAddFileSharingPreference",
        description="Share a Google Drive file or folder with a user, group, domain, or anyone.",
        input_model=ShareFileInput,
        action="GOOGLEDRIVE_ADD_FILE_SHARING_PREFERENCE",
        success_message="Sharing updated successfully",
    ),
    ActionSpec(
        name="googleDriveDeleteFolderOrFile",
        description="Permanently delete a Google Drive file or folder.",
        input_model=DeleteFileInput,
        action="GOOGLEDRIVE_GOOGLE_DRIVE_DELETE_FOLDER_OR_FILE_ACTION",
        success_message="Deleted successfully",
    ),
]


def register(registry) -> None:
    """Register Google Drive tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
