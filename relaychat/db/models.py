"""SQLAlchemy ORM models for the RelayChat state database.

This module defines the data models for users, chats, messages, stream
records, per-user integration connections, pending authorization requests,
and OAuth client state for the tool-serving gateway. Uses SQLAlchemy 2.0
style with Mapped and mapped_column.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def generate_uuid() -> str:
    """Generate a UUID4 string for primary keys."""
    return str(uuid4())


def utc_now_iso() -> str:
    """Generate current UTC timestamp in ISO8601 format."""
    return datetime.now(UTC).isoformat()


# Enums matching the database schema constraints


class UserType(str, Enum):
    """Account tiers. Each tier carries its own daily message quota."""

    guest = "guest"
    regular = "regular"


class Visibility(str, Enum):
    """Chat visibility. Public chats are readable by any signed-in user."""

    private = "private"
    public = "public"


class MessageRole(str, Enum):
    """Role of a persisted chat message."""

    user = "user"
    assistant = "assistant"


# SQLAlchemy Base


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Models


class User(Base):
    """Account that owns chats and integration connections.

    Attributes:
        id: UUID primary key.
        email: Unique login email.
        user_type: Account tier ('guest' or 'regular').
        token_hash: SHA-256 hex digest of the bearer token. The raw token
            is shown once at creation and never stored.
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    user_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserType.regular.value
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    chats: Mapped[list["Chat"]] = relationship(
        "Chat", back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r}, type={self.user_type!r})>"


class Chat(Base):
    """Conversation record.

    Created lazily on the first message of a new id and never recreated.
    Deleting a chat removes its messages and stream records.

    Attributes:
        id: Client-generated conversation id.
        user_id: Owner of the conversation.
        title: Title derived from the first user message.
        visibility: 'private' or 'public'.
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "chats"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Visibility.private.value
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    user: Mapped["User"] = relationship("User", back_populates="chats")
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        order_by="Message.sequence",
    )
    streams: Mapped[list["Stream"]] = relationship(
        "Stream", back_populates="chat", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_chats_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Chat(id={self.id!r}, user_id={self.user_id!r}, title={self.title!r})>"


class Message(Base):
    """Persisted chat message.

    Parts are stored as a JSON list of tagged objects (text, reasoning,
    file, tool-invocation) and are immutable once written.

    Attributes:
        id: Message id (client-generated for user messages).
        chat_id: FK to Chat.
        role: 'user' or 'assistant'.
        parts_json: JSON-encoded list of message parts.
        attachments_json: JSON-encoded list of attachments.
        sequence: Insertion order within the chat (monotonically increasing).
        created_at: ISO8601 creation timestamp.
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    chat_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    parts_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    attachments_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    chat: Mapped["Chat"] = relationship("Chat", back_populates="messages")

    __table_args__ = (
        UniqueConstraint("chat_id", "sequence", name="uq_messages_chat_seq"),
        Index("idx_messages_chat_seq", "chat_id", "sequence"),
        Index("idx_messages_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Message(id={self.id!r}, chat_id={self.chat_id!r}, "
            f"role={self.role!r}, seq={self.sequence})>"
        )


class Stream(Base):
    """Binding between a generated stream id and its chat.

    Carries no content; the output lives in the stream channel.
    """

    __tablename__ = "streams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    chat_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    chat: Mapped["Chat"] = relationship("Chat", back_populates="streams")

    __table_args__ = (
        Index("idx_streams_chat_created", "chat_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Stream(id={self.id!r}, chat_id={self.chat_id!r})>"


class UserIntegration(Base):
    """Resolved connection state for one (user, integration) pair.

    Written when a status lookup against the execution backend finds a
    matching connected account. Once present, the row is authoritative
    and later status lookups do not consult the backend.

    Attributes:
        id: UUID primary key.
        user_id: Owning user.
        integration_name: Catalog name (e.g. 'Gmail').
        connection_id: Backend connected-account id (most recent match).
        auth_config_id: Backend auth-config id used for the integration.
        is_connected: Connected flag.
        metadata_json: TEXT column with toolkit/status/connection ids,
            parsed via json.loads() in the service layer.
        created_at: ISO8601 creation timestamp.
        updated_at: ISO8601 timestamp, service-managed.
    """

    __tablename__ = "user_integrations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    integration_name: Mapped[str] = mapped_column(String(100), nullable=False)
    connection_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    auth_config_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_connected: Mapped[bool] = mapped_column(nullable=False, default=False)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True, default="{}")
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "integration_name", name="uq_user_integrations_user_name"
        ),
        Index("idx_user_integrations_user", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserIntegration(user_id={self.user_id!r}, "
            f"integration={self.integration_name!r}, connected={self.is_connected})>"
        )


class AuthRequest(Base):
    """Time-boxed record of an in-progress authorization redirect.

    At most one live request exists per (user, integration); it is reused
    until it expires or the connection completes.
    """

    __tablename__ = "auth_requests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    request_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    integration_name: Mapped[str] = mapped_column(String(100), nullable=False)
    redirect_url: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "integration_name", name="uq_auth_requests_user_integration"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AuthRequest(request_id={self.request_id!r}, "
            f"expires_at={self.expires_at!r})>"
        )


class McpOAuthState(Base):
    """OAuth client state for the tool-serving gateway, per (user, provider).

    Fields are upserted independently. Saving tokens clears the PKCE
    code verifier and the pending state, so a pending authorization and
    stored tokens are never live at the same time.
    """

    __tablename__ = "mcp_oauth_states"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    provider: Mapped[str] = mapped_column(String(100), nullable=False)
    client_information_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    tokens_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    code_verifier: Mapped[str | None] = mapped_column(Text, nullable=True)
    oauth_state: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )
    updated_at: Mapped[str] = mapped_column(
        String(50), nullable=False, default=utc_now_iso
    )

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_mcp_oauth_user_provider"),
    )

    def __repr__(self) -> str:
        return f"<McpOAuthState(user_id={self.user_id!r}, provider={self.provider!r})>"
