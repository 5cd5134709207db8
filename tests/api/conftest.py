"""Pytest fixtures for API tests.

Provides a TestClient wired to the in-memory database, with the
process-wide services the lifespan would normally build (turn handler,
connection manager, stream channel) replaced by fakes on app.state.
"""

from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from relaychat.api.main import app
from relaychat.db.connection import get_db
from relaychat.orchestrator.agent.tools import build_tool_registry
from relaychat.services.conversation_handler import ChatTurnHandler
from relaychat.services.integration_auth import IntegrationAuthManager
from relaychat.services.stream_channel import PassthroughStreamChannel
from tests.helpers import FakeComposio, FakeModelProvider, text_step

_STATE_ATTRS = ("session_factory", "registry", "stream_channel", "auth_manager", "turn_handler")


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a module-level exit event bound to the first loop."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


@pytest.fixture
def composio() -> FakeComposio:
    return FakeComposio()


@pytest.fixture
def provider() -> FakeModelProvider:
    """Model that answers a single text step."""
    return FakeModelProvider([text_step("Hi! How can I help?")])


@pytest.fixture
def turn_handler(session_factory, composio, provider) -> ChatTurnHandler:
    registry = build_tool_registry()
    auth_manager = IntegrationAuthManager(
        composio, session_factory=session_factory, max_attempts=2, poll_interval=0
    )
    return ChatTurnHandler(
        registry=registry,
        provider=provider,
        auth_manager=auth_manager,
        composio=composio,
        channel=PassthroughStreamChannel(),
        session_factory=session_factory,
        title_generator=AsyncMock(return_value="Greeting"),
        max_steps=5,
    )


@pytest.fixture
def client(
    test_db: Session, session_factory, turn_handler: ChatTurnHandler
) -> Generator[TestClient, None, None]:
    """Create a TestClient with overridden database dependency and services.

    Yields:
        TestClient configured for testing. The lifespan is not run.
    """

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.session_factory = session_factory
    app.state.registry = turn_handler.registry
    app.state.stream_channel = turn_handler.channel
    app.state.auth_manager = turn_handler.auth_manager
    app.state.turn_handler = turn_handler

    yield TestClient(app)

    app.dependency_overrides.clear()
    for attr in _STATE_ATTRS:
        if hasattr(app.state, attr):
            delattr(app.state, attr)


@pytest.fixture
def auth_user(make_user):
    """Regular user with ready-to-send Authorization headers."""
    user, token = make_user()
    return user, {"Authorization": f"Bearer {token}"}
