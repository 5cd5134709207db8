"""Persistence service for chats, messages, and stream records.

Thin layer between the turn handler, API routes, and SQLAlchemy models.
Message parts are written once and never mutated afterwards.
"""

import json
import logging
import os
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from relaychat.db.models import (
    Chat,
    Message,
    MessageRole,
    Stream,
    Visibility,
    generate_uuid,
)

logger = logging.getLogger(__name__)

TITLE_MODEL = os.environ.get("TITLE_MODEL", "claude-haiku-4-5-20251001")
TITLE_MAX_CHARS = 80


class ConversationService:
    """CRUD operations for chats and their messages.

    Args:
        db: SQLAlchemy session (sync).
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_chat(self, chat_id: str) -> Chat | None:
        """Fetch a chat by id."""
        return self._db.get(Chat, chat_id)

    def create_chat(
        self,
        chat_id: str,
        user_id: str,
        title: str,
        visibility: str = Visibility.private.value,
    ) -> Chat:
        """Create a chat row owned by user_id.

        Args:
            chat_id: Client-generated conversation id.
            user_id: Owner.
            title: Display title.
            visibility: 'private' or 'public'.

        Returns:
            The created Chat.
        """
        chat = Chat(id=chat_id, user_id=user_id, title=title, visibility=visibility)
        self._db.add(chat)
        self._db.commit()
        return chat

    def delete_chat(self, chat_id: str) -> dict[str, Any] | None:
        """Delete a chat with its messages and stream records.

        Returns:
            Serialized deleted chat, or None if it did not exist.
        """
        chat = self._db.get(Chat, chat_id)
        if chat is None:
            return None
        deleted = chat_to_dict(chat)
        self._db.delete(chat)
        self._db.commit()
        logger.info("Deleted chat %s", chat_id)
        return deleted

    def save_message(
        self,
        chat_id: str,
        role: str,
        parts: list[dict[str, Any]],
        message_id: str | None = None,
        attachments: list[dict[str, Any]] | None = None,
    ) -> Message:
        """Append a message with the next sequence number.

        Args:
            chat_id: Parent chat id.
            role: 'user' or 'assistant'.
            parts: Ordered message parts.
            message_id: Explicit id (client-generated for user messages).
            attachments: Optional attachment descriptors.

        Returns:
            The created Message.
        """
        # Concurrent appends to one chat collide on uq_messages_chat_seq.
        max_seq = self._db.execute(
            select(func.max(Message.sequence)).where(Message.chat_id == chat_id)
        ).scalar()
        next_seq = (max_seq or 0) + 1

        msg = Message(
            id=message_id or generate_uuid(),
            chat_id=chat_id,
            role=role,
            parts_json=json.dumps(parts),
            attachments_json=json.dumps(attachments or []),
            sequence=next_seq,
        )
        self._db.add(msg)
        self._db.commit()
        return msg

    def get_messages(self, chat_id: str) -> list[dict[str, Any]]:
        """Return a chat's messages in insertion order."""
        rows = self._db.execute(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.sequence.asc())
        ).scalars().all()
        return [message_to_dict(m) for m in rows]

    def count_user_messages(self, user_id: str, hours: int = 24) -> int:
        """Count messages a user sent in the trailing window.

        Args:
            user_id: Chat owner whose user-role messages are counted.
            hours: Window length.

        Returns:
            Number of user messages created within the window.
        """
        cutoff = (datetime.now(UTC) - timedelta(hours=hours)).isoformat()
        return self._db.execute(
            select(func.count(Message.id))
            .join(Chat, Chat.id == Message.chat_id)
            .where(
                Chat.user_id == user_id,
                Message.role == MessageRole.user.value,
                Message.created_at >= cutoff,
            )
        ).scalar_one()

    def create_stream_record(self, stream_id: str, chat_id: str) -> Stream:
        """Bind a stream id to a chat."""
        stream = Stream(id=stream_id, chat_id=chat_id)
        self._db.add(stream)
        self._db.commit()
        return stream

    def get_latest_stream_id(self, chat_id: str) -> str | None:
        """Most recent stream id for a chat, or None."""
        return self._db.execute(
            select(Stream.id)
            .where(Stream.chat_id == chat_id)
            .order_by(Stream.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()


def chat_to_dict(chat: Chat) -> dict[str, Any]:
    """Serialize a Chat for API responses."""
    return {
        "id": chat.id,
        "userId": chat.user_id,
        "title": chat.title,
        "visibility": chat.visibility,
        "createdAt": chat.created_at,
    }


def message_to_dict(message: Message) -> dict[str, Any]:
    """Serialize a Message for API responses and model history."""
    return {
        "id": message.id,
        "chatId": message.chat_id,
        "role": message.role,
        "parts": json.loads(message.parts_json) if message.parts_json else [],
        "attachments": (
            json.loads(message.attachments_json) if message.attachments_json else []
        ),
        "createdAt": message.created_at,
    }


def _first_text(parts: list[dict[str, Any]]) -> str:
    for part in parts:
        if part.get("type") == "text" and part.get("text"):
            return str(part["text"])
    return ""


def fallback_title(parts: list[dict[str, Any]]) -> str:
    """Deterministic title: the first line of text, truncated."""
    text = _first_text(parts).strip().splitlines()
    title = text[0].strip() if text else ""
    if not title:
        return "New chat"
    if len(title) > TITLE_MAX_CHARS:
        title = title[:TITLE_MAX_CHARS - 3].rstrip() + "..."
    return title


async def generate_title_from_user_message(
    parts: list[dict[str, Any]],
    client: Any = None,
) -> str:
    """Generate a chat title from the first user message.

    Uses a lightweight model call and falls back to the truncated first
    line of the message if the call fails or returns nothing.

    Args:
        parts: Parts of the first user message.
        client: Optional AsyncAnthropic-compatible client.

    Returns:
        A short title (at most TITLE_MAX_CHARS characters).
    """
    text = _first_text(parts)[:500]
    if not text:
        return fallback_title(parts)

    try:
        if client is None:
            from anthropic import AsyncAnthropic

            client = AsyncAnthropic()
        response = await client.messages.create(
            model=TITLE_MODEL,
            max_tokens=30,
            messages=[{
                "role": "user",
                "content": (
                    "Generate a short title (at most 80 characters) summarizing "
                    "this message. Return ONLY the title, no quotes or colons.\n\n"
                    f"Message: {text}"
                ),
            }],
        )
        if response.content:
            title = response.content[0].text.strip().strip('"')[:TITLE_MAX_CHARS]
            if title:
                return title
    except Exception as e:
        logger.warning("Title generation failed, using fallback: %s", e)

    return fallback_title(parts)
