"""Tests for ChatTurnHandler turn admission, execution, and persistence."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from relaychat.api.schemas import ChatRequest
from relaychat.errors import ChatError
from relaychat.orchestrator.agent.tools import build_tool_registry
from relaychat.services.conversation_handler import (
    GENERIC_ERROR_TEXT,
    ChatLockRegistry,
    ChatTurnHandler,
)
from relaychat.services.conversation_service import ConversationService
from relaychat.services.integration_auth import IntegrationAuthManager
from relaychat.services.stream_channel import PassthroughStreamChannel
from tests.helpers import FakeComposio, FakeModelProvider, text_step, tool_step


def _request(text="Hello", chat_id="chat-1", message_id="msg-1", **extra) -> ChatRequest:
    return ChatRequest.model_validate({
        "conversationId": chat_id,
        "message": {"id": message_id, "role": "user", "parts": [{"type": "text", "text": text}]},
        **extra,
    })


async def _collect(stream) -> list:
    chunks = [chunk async for chunk in stream]
    assert chunks[-1] == "[DONE]"
    return [json.loads(c) for c in chunks[:-1]]


@pytest.fixture
def composio() -> FakeComposio:
    return FakeComposio()


@pytest.fixture
def make_handler(composio, session_factory):
    """Build a handler around scripted model steps."""

    def _make(steps, gate=None) -> tuple[ChatTurnHandler, FakeModelProvider]:
        provider = FakeModelProvider(steps, gate=gate)
        handler = ChatTurnHandler(
            registry=build_tool_registry(),
            provider=provider,
            auth_manager=IntegrationAuthManager(composio, session_factory=session_factory),
            composio=composio,
            channel=PassthroughStreamChannel(),
            session_factory=session_factory,
            title_generator=AsyncMock(return_value="Greeting"),
            max_steps=5,
        )
        return handler, provider

    return _make


# ============================================================================
# Admission
# ============================================================================


class TestAdmission:
    """Failures before the stream record have no side effects."""

    @pytest.mark.asyncio
    async def test_requires_user(self, make_handler, test_db):
        handler, _ = make_handler([])
        with pytest.raises(ChatError) as exc_info:
            await handler.handle(_request(), None, test_db)
        assert exc_info.value.code == "unauthorized:chat"

    @pytest.mark.asyncio
    async def test_rate_limit(self, make_handler, make_user, test_db):
        user, _ = make_user(user_type="guest")
        svc = ConversationService(test_db)
        svc.create_chat("busy", user.id, "t")
        for _ in range(21):
            svc.save_message("busy", "user", [{"type": "text", "text": "x"}])

        handler, _ = make_handler([])
        with pytest.raises(ChatError) as exc_info:
            await handler.handle(_request(), user, test_db)

        assert exc_info.value.code == "rate_limit:chat"
        assert exc_info.value.status_code == 429
        assert svc.get_chat("chat-1") is None

    @pytest.mark.asyncio
    async def test_at_quota_is_allowed(self, make_handler, make_user, test_db):
        user, _ = make_user(user_type="guest")
        svc = ConversationService(test_db)
        svc.create_chat("busy", user.id, "t")
        for _ in range(20):
            svc.save_message("busy", "user", [{"type": "text", "text": "x"}])

        handler, _ = make_handler([text_step("ok")])
        events = await _collect(await handler.handle(_request(), user, test_db))
        assert events[-1]["type"] == "finish"

    @pytest.mark.asyncio
    async def test_other_users_chat_is_forbidden(self, make_handler, make_user, test_db):
        owner, _ = make_user()
        intruder, _ = make_user(email="eve@example.com")
        ConversationService(test_db).create_chat("chat-1", owner.id, "Mine")

        handler, _ = make_handler([])
        with pytest.raises(ChatError) as exc_info:
            await handler.handle(_request(), intruder, test_db)

        assert exc_info.value.code == "forbidden:chat"
        assert ConversationService(test_db).get_messages("chat-1") == []
        assert not handler.locks.get("chat-1").locked()


# ============================================================================
# Turns
# ============================================================================


class TestTurn:
    """Tests for a full turn through the passthrough channel."""

    @pytest.mark.asyncio
    async def test_hello_turn(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, provider = make_handler([text_step("Hi! How can I help?")])

        events = await _collect(await handler.handle(_request(), user, test_db))

        assert [e["type"] for e in events] == [
            "start", "start-step", "text-delta", "finish-step", "finish",
        ]
        svc = ConversationService(test_db)
        chat = svc.get_chat("chat-1")
        assert chat.title == "Greeting"
        assert chat.visibility == "private"
        messages = svc.get_messages("chat-1")
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[0]["id"] == "msg-1"
        assert messages[1]["id"] == events[0]["messageId"]
        assert messages[1]["parts"] == [{"type": "text", "text": "Hi! How can I help?"}]
        assert svc.get_latest_stream_id("chat-1") is not None
        assert provider.calls[0]["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "Hello"}]}
        ]

    @pytest.mark.asyncio
    async def test_second_turn_sees_history(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, provider = make_handler([text_step("First"), text_step("Second")])

        await _collect(await handler.handle(_request("one"), user, test_db))
        await _collect(await handler.handle(_request("two", message_id="msg-2"), user, test_db))

        history = provider.calls[1]["messages"]
        assert [m["role"] for m in history] == ["user", "assistant", "user"]
        assert history[-1]["content"][0]["text"] == "two"
        assert len(ConversationService(test_db).get_messages("chat-1")) == 4

    @pytest.mark.asyncio
    async def test_reasoning_model_runs_without_tools(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, provider = make_handler([text_step("Thought it through")])

        await _collect(
            await handler.handle(_request(modelId="chat-model-reasoning"), user, test_db)
        )

        assert provider.calls[0]["tools"] == []
        assert provider.calls[0]["model_id"] == "chat-model-reasoning"

    @pytest.mark.asyncio
    async def test_tool_call_uses_current_user(self, make_handler, make_user, composio, test_db):
        user, _ = make_user()
        handler, provider = make_handler([
            tool_step([("call-1", "gmailSendEmail", {
                "recipient_email": "bob@example.com", "subject": "Hi", "body": "Hello",
            })]),
            text_step("Sent."),
        ])

        await _collect(await handler.handle(_request("Email Bob"), user, test_db))

        assert "gmailSendEmail" in provider.calls[0]["tools"]
        composio.execute_tool.assert_awaited_once()
        assert composio.execute_tool.await_args.args[:2] == ("GMAIL_SEND_EMAIL", user.id)
        assistant = ConversationService(test_db).get_messages("chat-1")[-1]
        invocation = assistant["parts"][0]
        assert invocation["type"] == "tool-invocation"
        assert invocation["state"] == "output-available"

    @pytest.mark.asyncio
    async def test_auth_tool_emits_requires_auth(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, _ = make_handler([
            tool_step([("call-1", "authenticateGmail", {})]),
            text_step("Please connect Gmail."),
        ])

        events = await _collect(await handler.handle(_request("Connect Gmail"), user, test_db))

        auth = [e for e in events if e["type"] == "data-auth-required"]
        assert auth[0]["data"]["authUrl"] == "https://connect.example.com/oauth/abc"
        assert auth[0]["data"]["integrationName"] == "Gmail"

    @pytest.mark.asyncio
    async def test_model_failure_becomes_error_event(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, _ = make_handler([RuntimeError("model down")])

        events = await _collect(await handler.handle(_request(), user, test_db))

        assert events[-1] == {"type": "error", "errorText": GENERIC_ERROR_TEXT}
        assert "finish" not in [e["type"] for e in events]
        messages = ConversationService(test_db).get_messages("chat-1")
        assert [m["role"] for m in messages] == ["user"]

    @pytest.mark.asyncio
    async def test_failure_keeps_partial_output(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, _ = make_handler([
            tool_step([("call-1", "composioSearch", {"query": "news"})], text="Searching"),
            RuntimeError("model down"),
        ])

        events = await _collect(await handler.handle(_request(), user, test_db))

        assert events[-1]["type"] == "error"
        assistant = ConversationService(test_db).get_messages("chat-1")[-1]
        assert assistant["role"] == "assistant"
        assert assistant["parts"][0] == {"type": "text", "text": "Searching"}

    @pytest.mark.asyncio
    async def test_channel_failure_yields_error_stream(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, _ = make_handler([])
        handler.channel = AsyncMock()
        handler.channel.write.side_effect = ConnectionError("redis gone")

        events = await _collect(await handler.handle(_request(), user, test_db))

        assert events == [{"type": "error", "errorText": GENERIC_ERROR_TEXT}]
        assert not handler.locks.get("chat-1").locked()


class TestConcurrentTurns:
    """Turns on one chat run one after another."""

    @pytest.mark.asyncio
    async def test_second_turn_waits_for_first(self, make_handler, make_user, test_db):
        user, _ = make_user()
        gate = asyncio.Event()
        handler, provider = make_handler(
            [text_step("answer-0"), text_step("answer-1")], gate=gate
        )
        svc = ConversationService(test_db)

        first = await handler.handle(_request("first"), user, test_db)
        second_task = asyncio.create_task(
            handler.handle(_request("second", message_id="msg-2"), user, test_db)
        )
        for _ in range(5):
            await asyncio.sleep(0)

        assert not second_task.done()
        assert [m["role"] for m in svc.get_messages("chat-1")] == ["user"]

        gate.set()
        await _collect(first)
        await _collect(await second_task)

        assert [(m["role"], m["parts"][0]["text"]) for m in svc.get_messages("chat-1")] == [
            ("user", "first"),
            ("assistant", "answer-0"),
            ("user", "second"),
            ("assistant", "answer-1"),
        ]
        second_input = provider.calls[1]["messages"]
        assert [m["role"] for m in second_input] == ["user", "assistant", "user"]
        assert second_input[-1]["content"][0]["text"] == "second"

    @pytest.mark.asyncio
    async def test_lock_released_after_turn(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, _ = make_handler([RuntimeError("model down")])

        await _collect(await handler.handle(_request(), user, test_db))
        for _ in range(3):
            await asyncio.sleep(0)

        assert not handler.locks.get("chat-1").locked()


class TestResume:
    """Tests for ChatTurnHandler.resume."""

    @pytest.mark.asyncio
    async def test_no_stream_record(self, make_handler, test_db):
        handler, _ = make_handler([])
        assert await handler.resume("chat-1", test_db) is None

    @pytest.mark.asyncio
    async def test_passthrough_cannot_resume(self, make_handler, make_user, test_db):
        user, _ = make_user()
        handler, _ = make_handler([text_step("hi")])
        await _collect(await handler.handle(_request(), user, test_db))
        assert await handler.resume("chat-1", test_db) is None


class TestChatLockRegistry:
    """Tests for per-chat locks."""

    def test_same_lock_per_chat(self):
        locks = ChatLockRegistry()
        assert locks.get("a") is locks.get("a")
        assert locks.get("a") is not locks.get("b")
        assert len(locks) == 2

    @pytest.mark.asyncio
    async def test_discard_skips_held_lock(self):
        locks = ChatLockRegistry()
        lock = locks.get("a")
        async with lock:
            locks.discard("a")
            assert len(locks) == 1
        locks.discard("a")
        assert len(locks) == 0
