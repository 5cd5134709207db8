"""Gmail tools: send, draft, fetch, reply, and trash email."""

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Gmail"


class Attachment(BaseModel):
    s3key: str = Field(description="S3 key of the attachment")
    mimetype: str = Field(description="Mimetype of the attachment")
    name: str = Field(description="Name of the attachment")


class SendEmailInput(BaseModel):
    recipient_email: str = Field(description="Recipient email address")
    subject: str = Field(description="Email subject")
    body: str = Field(description="Email body content")
    extra_recipients: list[str] | None = Field(
        default=None, description="Extra recipient email addresses"
    )
    cc: list[str] | None = Field(default=None, description="CC email addresses")
    bcc: list[str] | None = Field(default=None, description="BCC email addresses")
    attachment: Attachment | None = Field(default=None, description="File to attach")
    is_html: bool | None = Field(
        default=None, description="Set to true if the email body contains HTML tags."
    )


class CreateDraftInput(BaseModel):
    recipient_email: str = Field(description="Recipient email address")
    subject: str = Field(description="Email subject")
    body: str = Field(description="Email body content")
    cc: list[str] | None = Field(default=None, description="CC email addresses")
    bcc: list[str] | None = Field(default=None, description="BCC email addresses")
    thread_id: str | None = Field(
        default=None, description="Thread to add the draft to, for replies"
    )
    is_html: bool | None = Field(default=None, description="Body contains HTML")


class SendDraftInput(BaseModel):
    draft_id: str = Field(description="ID of the draft to send")


class MoveToTrashInput(BaseModel):
    message_id: str = Field(description="ID of the email message to trash")


class FetchEmailsInput(BaseModel):
    query: str | None = Field(
        default=None,
        description="Gmail search query, e.g. 'from:alice is:unread newer_than:2d'",
    )
    max_results: int = Field(
        default=10, ge=1, le=500, description="Maximum number of messages to return"
    )
    label_ids: list[str] | None = Field(
        default=None, description="Only return messages with all of these label ids"
    )
    include_payload: bool = Field(
        default=True,
        description="Include full message payload (headers, body, attachments)",
    )
    include_spam_trash: bool = Field(
        default=False, description="Include messages from SPAM and TRASH"
    )
    ids_only: bool = Field(
        default=False, description="Only return message and thread ids"
    )
    page_token: str | None = Field(
        default=None, description="Token for retrieving the next page"
    )


class ReplyToThreadInput(BaseModel):
    thread_id: str = Field(description="ID of the thread to reply to")
    recipient_email: str = Field(description="Recipient email address")
    message_body: str = Field(description="Reply body content")
    cc: list[str] | None = Field(default=None, description="CC email addresses")
    bcc: list[str] | None = Field(default=None, description="BCC email addresses")
    is_html: bool | None = Field(default=None, description="Body contains HTML")


def _fetch_message(params: FetchEmailsInput, data: object) -> str:
    messages = data.get("messages", []) if isinstance(data, dict) else []
    return f"Fetched {len(messages)} email(s)"


ACTIONS = [
    ActionSpec(
        name="gmailSendEmail",
        description=(
            "Sends an email via gmail api using the authenticated user's "
            "google profile display name."
        ),
        input_model=SendEmailInput,
        action="GMAIL_SEND_EMAIL",
        success_message="Email sent successfully",
    ),
    ActionSpec(
        name="gmailCreateDraft",
        description="Creates a gmail email draft. Supports to/cc/bcc and thread replies.",
        input_model=CreateDraftInput,
        action="GMAIL_CREATE_EMAIL_DRAFT",
        success_message="Draft created successfully",
    ),
    ActionSpec(
        name="gmailSendDraft",
        description=(
            "Sends the specified, existing draft to the recipients in the to, "
            "cc, and bcc headers."
        ),
        input_model=SendDraftInput,
        action="GMAIL_SEND_DRAFT",
        success_message="Draft email sent successfully",
    ),
    ActionSpec(
        name="gmailMoveToTrash",
        description=(
            "Moves an existing, non-deleted email message to the trash for "
            "the specified user."
        ),
        input_model=MoveToTrashInput,
        action="GMAIL_MOVE_TO_TRASH",
        success_message="Email moved to trash",
    ),
    ActionSpec(
        name="gmailFetchEmails",
        description=(
            "Fetches a list of email messages from a gmail account, supporting "
            "filtering, pagination, and optional full content retrieval."
        ),
        input_model=FetchEmailsInput,
        action="GMAIL_FETCH_EMAILS",
        success_message=_fetch_message,
    ),
    ActionSpec(
        name="gmailReplyToEmail",
        description="Sends a reply within a specific gmail thread.",
        input_model=ReplyToThreadInput,
        action="GMAIL_REPLY_TO_THREAD",
        success_message="Reply sent successfully",
    ),
]


def register(registry) -> None:
    """Register Gmail tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
