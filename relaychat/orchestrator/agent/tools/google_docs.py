"""Google Docs tools."""

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Google Docs"


class CreateDocumentInput(BaseModel):
    title: str = Field(description="Title of the new document")
    text: str = Field(default="", description="Initial plain-text content")


class CreateDocumentMarkdownInput(BaseModel):
    title: str = Field(description="Title of the new document")
    markdown_text: str = Field(description="Document content in Markdown")


class GetDocumentInput(BaseModel):
    id: str = Field(description="Google Docs document id")


class SearchDocumentsInput(BaseModel):
    query: str | None = Field(default=None, description="Text to search for in document names")
    max_results: int = Field(default=10, ge=1, le=1000)
    modified_after: str | None = Field(
        default=None, description="RFC3339 timestamp; only documents modified after it"
    )
    starred_only: bool = False


class UpdateDocumentMarkdownInput(BaseModel):
    id: str = Field(description="Document id to overwrite")
    new_markdown_text: str = Field(description="Replacement content in Markdown")


ACTIONS = [
    ActionSpec(
        name="googleDocsCreateDocument",
        description="Create a new Google Docs document with a title and optional plain text.",
        input_model=CreateDocumentInput,
        action="GOOGLEDOCS_CREATE_DOCUMENT",
        success_message="Document created successfully",
    ),
    ActionSpec(
        name="googleDocsCreateDocumentMarkdown",
        description="Create a new Google Docs document from Markdown content.",
        input_model=CreateDocumentMarkdownInput,
        action="GOOGLEDOCS_CREATE_DOCUMENT_MARKDOWN",
        success_message="Document created successfully",
    ),
    ActionSpec(
        name="googleDocsGetDocumentById",
        description="Retrieve a Google Docs document by id.",
        input_model=GetDocumentInput,
        action="GOOGLEDOCS_GET_DOCUMENT_BY_ID",
        success_message="Document retrieved successfully",
    ),
    ActionSpec(
        name="googleDocsSearchDocuments",
        description="Search Google Docs documents by name and modification time.",
        input_model=SearchDocumentsInput,
        action="GOOGLEDOCS_SEARCH_DOCUMENTS",
        success_message="Documents retrieved successfully",
    ),
    ActionSpec(
        name="googleDocsUpdateDocumentMarkdown",
        description="Replace the entire content of a Google Docs document with Markdown.",
        input_model=UpdateDocumentMarkdownInput,
        action="GOOGLEDOCS_UPDATE_DOCUMENT_MARKDOWN",
        success_message="Document updated successfully",
    ),
]


def register(registry) -> None:
    """Register Google Docs tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
