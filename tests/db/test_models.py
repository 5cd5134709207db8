"""Tests for ORM models and constraints."""

import pytest
from sqlalchemy.exc import IntegrityError

from relaychat.db.models import Chat, Message, UserIntegration


class TestChatModels:
    """Tests for chat and message models."""

    def test_message_sequence_unique_per_chat(self, test_db, make_user):
        user, _ = make_user()
        test_db.add(Chat(id="chat-1", user_id=user.id, title="t"))
        test_db.add(Message(id="m1", chat_id="chat-1", role="user", sequence=1))
        test_db.commit()

        test_db.add(Message(id="m2", chat_id="chat-1", role="user", sequence=1))
        with pytest.raises(IntegrityError):
            test_db.commit()
        test_db.rollback()

    def test_chat_defaults(self, test_db, make_user):
        user, _ = make_user()
        chat = Chat(id="chat-1", user_id=user.id, title="t")
        test_db.add(chat)
        test_db.commit()
        assert chat.visibility == "private"
        assert chat.created_at

    def test_user_owns_chats(self, test_db, make_user):
        user, _ = make_user()
        test_db.add(Chat(id="chat-1", user_id=user.id, title="t"))
        test_db.commit()
        test_db.refresh(user)
        assert [c.id for c in user.chats] == ["chat-1"]


class TestUserIntegration:
    """Tests for persisted connection records."""

    def test_one_record_per_user_and_integration(self, test_db):
        test_db.add(UserIntegration(user_id="u1", integration_name="Gmail", is_connected=True))
        test_db.commit()
        test_db.add(UserIntegration(user_id="u1", integration_name="Gmail", is_connected=True))
        with pytest.raises(IntegrityError):
            test_db.commit()
        test_db.rollback()
