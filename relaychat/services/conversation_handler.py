"""Chat turn orchestration behind the chat routes.

One turn runs: take the chat lock -> authorize and rate-limit -> ensure the
chat exists -> persist the inbound message -> run the agent loop ->
persist the assistant message -> emit through the stream channel.

Everything up to the stream record raises ChatError and has no side
effects on failure. Everything after it is reported as stream content.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractContextManager
from typing import Any

from sqlalchemy.orm import Session

from relaychat.api.schemas import ChatRequest
from relaychat.db.connection import get_db_context
from relaychat.db.models import MessageRole, User, generate_uuid
from relaychat.errors import ChatError
from relaychat.orchestrator.agent.loop import active_tools_for_model, run_agent_loop
from relaychat.orchestrator.agent.messages import to_anthropic_messages
from relaychat.orchestrator.agent.model_provider import ModelProvider
from relaychat.orchestrator.agent.system_prompt import build_system_prompt
from relaychat.orchestrator.agent.tools.core import ToolContext
from relaychat.orchestrator.agent.tools.registry import ToolRegistry
from relaychat.orchestrator.agent.writer import DONE_MARKER, MessageStreamWriter
from relaychat.services.composio_client import ComposioClient
from relaychat.services.conversation_service import (
    ConversationService,
    generate_title_from_user_message,
)
from relaychat.services.entitlements import is_over_quota
from relaychat.services.integration_auth import IntegrationAuthManager
from relaychat.services.stream_channel import StreamChannel

logger = logging.getLogger(__name__)

GENERIC_ERROR_TEXT = "Oops, an error occurred!"

TitleGenerator = Callable[[list[dict[str, Any]]], Awaitable[str]]


class ChatLockRegistry:
    """Per-chat asyncio locks serializing turns on one conversation.

    Process-local. Locks are created on first use and kept until the chat
    is deleted.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, chat_id: str) -> asyncio.Lock:
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[chat_id] = lock
        return lock

    def discard(self, chat_id: str) -> None:
        """Forget a chat's lock unless a turn currently holds it."""
        lock = self._locks.get(chat_id)
        if lock is not None and not lock.locked():
            del self._locks[chat_id]

    def __len__(self) -> int:
        return len(self._locks)


class ChatTurnHandler:
    """Runs chat turns against the shared registry and stream channel.

    Args:
        registry: Loaded tool registry.
        provider: Model provider.
        auth_manager: Integration connection lifecycle manager.
        composio: Composio client handed to tools.
        channel: Output stream channel.
        session_factory: Context manager yielding a DB session. Used for
            work that outlives the request session.
        title_generator: Async callable producing a chat title from the
            first message parts.
        max_steps: Agent step cap. Defaults to MAX_AGENT_STEPS.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        provider: ModelProvider,
        auth_manager: IntegrationAuthManager,
        composio: ComposioClient,
        channel: StreamChannel,
        session_factory: Callable[[], AbstractContextManager[Session]] = get_db_context,
        title_generator: TitleGenerator = generate_title_from_user_message,
        max_steps: int | None = None,
    ) -> None:
        self.registry = registry
        self.provider = provider
        self.auth_manager = auth_manager
        self.composio = composio
        self.channel = channel
        self.locks = ChatLockRegistry()
        self._session_factory = session_factory
        self._title_generator = title_generator
        self._max_steps = max_steps
        self._tasks: set[asyncio.Task] = set()

    async def handle(
        self,
        request: ChatRequest,
        user: User | None,
        db: Session,
    ) -> AsyncIterator[str]:
        """Admit a turn and start producing its events.

        Args:
            request: Validated chat request.
            user: Authenticated user, or None.
            db: Request-scoped DB session.

        Returns:
            Async iterator of serialized events ending with the done marker.

        Raises:
            ChatError: unauthorized:chat, rate_limit:chat or forbidden:chat,
                before any side effect.
        """
        if user is None:
            raise ChatError.from_code("unauthorized:chat")

        chat_id = request.conversationId
        lock = self.locks.get(chat_id)
        await lock.acquire()
        try:
            stream_id = await self._admit(request, user, db)
        except BaseException:
            lock.release()
            raise

        writer = MessageStreamWriter(generate_uuid())
        task = asyncio.create_task(
            self._run_turn(
                chat_id=chat_id, user_id=user.id, model_id=request.modelId, writer=writer
            )
        )
        # The turn finishes and persists even if the consumer goes away.
        # The chat lock is held from admission until the turn is done.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda _: lock.release())

        try:
            return await self.channel.write(stream_id, writer.drain)
        except Exception:
            logger.exception("Failed to open output stream %s", stream_id)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            return _error_stream()

    async def _admit(self, request: ChatRequest, user: User, db: Session) -> str:
        """Rate-limit, authorize, and persist the inbound message.

        Runs with the chat lock held, so the inbound message of a queued
        turn is saved only after the previous turn's reply.

        Returns:
            Id of the stream record created for the turn.
        """
        svc = ConversationService(db)
        message_count = svc.count_user_messages(user.id, hours=24)
        if is_over_quota(user.user_type, message_count):
            logger.info(
                "Rate limit hit for user %s (%d messages in 24h)", user.id, message_count
            )
            raise ChatError.from_code("rate_limit:chat")

        chat_id = request.conversationId
        parts = request.parts()
        chat = svc.get_chat(chat_id)
        if chat is None:
            title = await self._title_generator(parts)
            svc.create_chat(chat_id, user.id, title, request.visibility)
            logger.info("Created chat %s for user %s", chat_id, user.id)
        elif chat.user_id != user.id:
            raise ChatError.from_code("forbidden:chat")

        svc.save_message(
            chat_id, MessageRole.user.value, parts, message_id=request.message.id
        )

        stream_id = generate_uuid()
        svc.create_stream_record(stream_id, chat_id)
        return stream_id

    async def resume(self, chat_id: str, db: Session) -> AsyncIterator[str] | None:
        """Reattach to the latest stream of a chat, or None."""
        stream_id = ConversationService(db).get_latest_stream_id(chat_id)
        if stream_id is None:
            return None
        return await self.channel.resume(stream_id)

    async def _run_turn(
        self,
        *,
        chat_id: str,
        user_id: str,
        model_id: str,
        writer: MessageStreamWriter,
    ) -> None:
        writer.start()
        failed = False
        try:
            with self._session_factory() as db:
                history = ConversationService(db).get_messages(chat_id)

            context = ToolContext(
                user_id=user_id,
                chat_id=chat_id,
                writer=writer,
                auth_manager=self.auth_manager,
                composio=self.composio,
            )
            tools, names = self.registry.instantiate_all(context)
            result = await run_agent_loop(
                provider=self.provider,
                model_id=model_id,
                system=build_system_prompt(model_id),
                messages=to_anthropic_messages(history),
                tools=tools,
                active_tool_names=active_tools_for_model(model_id, names),
                writer=writer,
                max_steps=self._max_steps,
            )
            logger.info(
                "Turn finished for chat %s: steps=%d stop_reason=%s",
                chat_id,
                result.steps,
                result.stop_reason,
            )
        except Exception:
            failed = True
            logger.exception("Turn failed for chat %s", chat_id)
            writer.error(GENERIC_ERROR_TEXT)
        finally:
            self._persist_assistant(chat_id, writer)
            if not failed:
                writer.finish()
            writer.close()

    def _persist_assistant(self, chat_id: str, writer: MessageStreamWriter) -> None:
        parts = writer.parts()
        if not parts:
            return
        try:
            with self._session_factory() as db:
                ConversationService(db).save_message(
                    chat_id,
                    MessageRole.assistant.value,
                    parts,
                    message_id=writer.message_id,
                )
        except Exception:
            logger.exception("Failed to persist assistant message for chat %s", chat_id)

    async def shutdown(self) -> None:
        """Cancel turns still running at process shutdown."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def _error_stream() -> AsyncIterator[str]:
    yield json.dumps({"type": "error", "errorText": GENERIC_ERROR_TEXT})
    yield DONE_MARKER
