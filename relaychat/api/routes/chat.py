"""FastAPI routes for chat turns over SSE.

Endpoints:
    POST   /chat                     — Run a turn, streaming events
    GET    /chat/{chat_id}/stream    — Resume the latest stream (204 if not possible)
    GET    /chat/{chat_id}/messages  — Persisted message history
    DELETE /chat?id=                 — Delete a chat
"""

import logging
from collections.abc import AsyncIterator
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse

from relaychat.api.middleware.auth import get_current_user
from relaychat.api.schemas import ChatRequest, MessageListResponse
from relaychat.db.connection import get_db
from relaychat.db.models import Chat, User, Visibility
from relaychat.errors import ChatError
from relaychat.services.conversation_handler import ChatTurnHandler
from relaychat.services.conversation_service import (
    ConversationService,
    chat_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def get_turn_handler(request: Request) -> ChatTurnHandler:
    """Process-wide turn handler created in the app lifespan."""
    return request.app.state.turn_handler


async def _sse_events(stream: AsyncIterator[str]) -> AsyncGenerator[dict, None]:
    """Wrap serialized events as SSE data lines.

    Args:
        stream: Serialized events ending with the done marker.

    Yields:
        SSE event dictionaries.
    """
    async for chunk in stream:
        yield {"data": chunk}


def _load_readable_chat(db: Session, chat_id: str, user: User | None) -> Chat:
    chat = ConversationService(db).get_chat(chat_id)
    if chat is None:
        raise ChatError.from_code("not_found:chat")
    if chat.visibility == Visibility.private.value:
        if user is None:
            raise ChatError.from_code("unauthorized:chat")
        if chat.user_id != user.id:
            raise ChatError.from_code("forbidden:chat")
    return chat


@router.post("")
async def post_chat(
    request: Request,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_current_user),
    handler: ChatTurnHandler = Depends(get_turn_handler),
) -> EventSourceResponse:
    """Run one chat turn and stream its events.

    Returns:
        EventSourceResponse whose data lines are JSON events, ending
        with [DONE].

    Raises:
        ChatError: bad_request:api, unauthorized:chat, rate_limit:chat or
            forbidden:chat before streaming starts.
    """
    try:
        body = ChatRequest.model_validate(await request.json())
    except (ValidationError, ValueError) as e:
        logger.info("Rejected chat request: %s", type(e).__name__)
        raise ChatError.from_code("bad_request:api") from e

    stream = await handler.handle(body, user, db)
    return EventSourceResponse(_sse_events(stream), media_type="text/event-stream")


@router.get("/{chat_id}/stream", response_model=None)
async def resume_chat_stream(
    chat_id: str,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_current_user),
    handler: ChatTurnHandler = Depends(get_turn_handler),
) -> EventSourceResponse | Response:
    """Reattach to the chat's latest stream.

    Returns:
        Replay plus live tail of the stream, or 204 when the stream has
        expired or resumption is disabled.
    """
    _load_readable_chat(db, chat_id, user)
    stream = await handler.resume(chat_id, db)
    if stream is None:
        return Response(status_code=204)
    return EventSourceResponse(_sse_events(stream), media_type="text/event-stream")


@router.get("/{chat_id}/messages", response_model=MessageListResponse)
def get_chat_messages(
    chat_id: str,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_current_user),
) -> dict:
    """Persisted history of a chat, readable by its owner or by anyone if public."""
    chat = _load_readable_chat(db, chat_id, user)
    return {
        "chat": chat_to_dict(chat),
        "messages": ConversationService(db).get_messages(chat_id),
    }


@router.delete("")
def delete_chat(
    id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User | None = Depends(get_current_user),
    handler: ChatTurnHandler = Depends(get_turn_handler),
) -> dict:
    """Delete a chat owned by the current user.

    Returns:
        The deleted chat.

    Raises:
        ChatError: 400 missing id, 401 no session, 404 unknown chat,
            403 non-owner.
    """
    if not id:
        raise ChatError.from_code("bad_request:api", cause="Parameter id is required.")
    if user is None:
        raise ChatError.from_code("unauthorized:chat")

    svc = ConversationService(db)
    chat = svc.get_chat(id)
    if chat is None:
        raise ChatError.from_code("not_found:chat")
    if chat.user_id != user.id:
        raise ChatError.from_code("forbidden:chat")

    deleted = svc.delete_chat(id)
    handler.locks.discard(id)
    return deleted
