"""Tests for ConversationService persistence and title generation."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from relaychat.db.models import Message, Stream
from relaychat.services.conversation_service import (
    TITLE_MAX_CHARS,
    ConversationService,
    fallback_title,
    generate_title_from_user_message,
)


@pytest.fixture
def user(make_user):
    return make_user()[0]


@pytest.fixture
def svc(test_db) -> ConversationService:
    return ConversationService(test_db)


def _text(text: str) -> list[dict]:
    return [{"type": "text", "text": text}]


# ============================================================================
# Chats and Messages
# ============================================================================


class TestConversationService:
    """Tests for chat and message CRUD."""

    def test_create_and_get_chat(self, svc, user):
        svc.create_chat("chat-1", user.id, "Hello", "public")
        chat = svc.get_chat("chat-1")
        assert chat.title == "Hello"
        assert chat.visibility == "public"
        assert chat.user_id == user.id

    def test_get_missing_chat(self, svc):
        assert svc.get_chat("nope") is None

    def test_messages_keep_insertion_order(self, svc, user):
        svc.create_chat("chat-1", user.id, "t")
        svc.save_message("chat-1", "user", _text("one"), message_id="m1")
        svc.save_message("chat-1", "assistant", _text("two"))
        svc.save_message("chat-1", "user", _text("three"))

        messages = svc.get_messages("chat-1")
        assert [m["parts"][0]["text"] for m in messages] == ["one", "two", "three"]
        assert messages[0]["id"] == "m1"
        assert messages[1]["role"] == "assistant"
        assert messages[0]["attachments"] == []

    def test_sequence_is_per_chat(self, svc, user, test_db):
        svc.create_chat("chat-1", user.id, "t")
        svc.create_chat("chat-2", user.id, "t")
        svc.save_message("chat-1", "user", _text("a"))
        second = svc.save_message("chat-2", "user", _text("b"))
        assert second.sequence == 1

    def test_delete_chat_cascades(self, svc, user, test_db):
        svc.create_chat("chat-1", user.id, "Title")
        svc.save_message("chat-1", "user", _text("hi"))
        svc.create_stream_record("stream-1", "chat-1")

        deleted = svc.delete_chat("chat-1")

        assert deleted["id"] == "chat-1"
        assert deleted["title"] == "Title"
        assert svc.get_chat("chat-1") is None
        assert test_db.query(Message).count() == 0
        assert test_db.query(Stream).count() == 0

    def test_delete_missing_chat(self, svc):
        assert svc.delete_chat("nope") is None

    def test_latest_stream_id(self, svc, user, test_db):
        svc.create_chat("chat-1", user.id, "t")
        assert svc.get_latest_stream_id("chat-1") is None
        test_db.add(Stream(id="s-old", chat_id="chat-1", created_at="2025-01-01T00:00:00+00:00"))
        test_db.add(Stream(id="s-new", chat_id="chat-1", created_at="2025-02-01T00:00:00+00:00"))
        test_db.commit()
        assert svc.get_latest_stream_id("chat-1") == "s-new"


class TestCountUserMessages:
    """Tests for the 24-hour user message count."""

    def test_counts_only_recent_user_messages(self, svc, user, make_user, test_db):
        other = make_user(email="other@example.com")[0]
        svc.create_chat("chat-1", user.id, "t")
        svc.create_chat("chat-2", other.id, "t")
        svc.save_message("chat-1", "user", _text("a"))
        svc.save_message("chat-1", "assistant", _text("b"))
        svc.save_message("chat-1", "user", _text("c"))
        svc.save_message("chat-2", "user", _text("d"))

        old = svc.save_message("chat-1", "user", _text("old"))
        old.created_at = (datetime.now(UTC) - timedelta(hours=25)).isoformat()
        test_db.commit()

        assert svc.count_user_messages(user.id, hours=24) == 2
        assert svc.count_user_messages(other.id, hours=24) == 1


# ============================================================================
# Titles
# ============================================================================


class TestTitles:
    """Tests for title generation and fallback."""

    def test_fallback_uses_first_line(self):
        assert fallback_title(_text("Plan my week\nand more")) == "Plan my week"

    def test_fallback_truncates(self):
        title = fallback_title(_text("x" * 200))
        assert len(title) <= TITLE_MAX_CHARS
        assert title.endswith("...")

    def test_fallback_without_text(self):
        assert fallback_title([{"type": "file", "url": "u"}]) == "New chat"

    @pytest.mark.asyncio
    async def test_generated_title(self):
        client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(
            return_value=SimpleNamespace(content=[SimpleNamespace(text=' "Weekly plan" ')])
        )))
        title = await generate_title_from_user_message(_text("Plan my week"), client=client)
        assert title == "Weekly plan"

    @pytest.mark.asyncio
    async def test_model_failure_falls_back(self):
        client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(
            side_effect=RuntimeError("no network")
        )))
        title = await generate_title_from_user_message(_text("Plan my week"), client=client)
        assert title == "Plan my week"
