"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the RelayChat REST API:
chat turns, chat history, and integration connection management.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from relaychat.services.entitlements import CHAT_MODEL_ID


# Chat request schemas


class TextPart(BaseModel):
    """Text part of an inbound user message."""

    type: Literal["text"]
    text: str = Field(..., min_length=1, max_length=2000)


class FilePart(BaseModel):
    """File attachment part of an inbound user message."""

    type: Literal["file"]
    mediaType: Literal["image/jpeg", "image/png"]
    name: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1)


MessagePart = Annotated[TextPart | FilePart, Field(discriminator="type")]


class ChatRequestMessage(BaseModel):
    """Inbound user message."""

    id: str = Field(..., min_length=1, max_length=36)
    role: Literal["user"]
    parts: list[MessagePart] = Field(..., min_length=1)


class ChatRequest(BaseModel):
    """Request body for POST /chat."""

    model_config = ConfigDict(extra="ignore")

    conversationId: str = Field(..., min_length=1, max_length=36)
    message: ChatRequestMessage
    modelId: Literal["chat-model", "chat-model-reasoning"] = CHAT_MODEL_ID
    visibility: Literal["private", "public"] = "private"

    def parts(self) -> list[dict]:
        """Message parts as plain dicts for persistence."""
        return [p.model_dump() for p in self.message.parts]


# Chat response schemas


class ChatResponse(BaseModel):
    """Serialized chat."""

    id: str
    userId: str
    title: str
    visibility: str
    createdAt: str


class MessageResponse(BaseModel):
    """Serialized persisted message."""

    id: str
    chatId: str
    role: str
    parts: list[dict]
    attachments: list[dict] = []
    createdAt: str


class MessageListResponse(BaseModel):
    """Response for GET /chat/{chat_id}/messages."""

    chat: ChatResponse
    messages: list[MessageResponse]


# Integration schemas


class IntegrationResponse(BaseModel):
    """One catalog integration annotated with connection state."""

    name: str
    appId: str
    description: str
    logo: str
    connected: bool


class IntegrationListResponse(BaseModel):
    """Response for GET /integrations."""

    integrations: list[IntegrationResponse]


class IntegrationAuthRequest(BaseModel):
    """Request body for POST /integrations/auth."""

    integration: str = Field(..., min_length=1)


class IntegrationAuthResponse(BaseModel):
    """Response for POST /integrations/auth."""

    redirectUrl: str
    integration: str


class ConnectionStatusResponse(BaseModel):
    """Response for GET /integrations/auth."""

    integration: str
    connected: bool
    connectionId: str | None = None
    error: str | None = None
