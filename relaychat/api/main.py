"""FastAPI application for the RelayChat API.

Provides the main application instance with routers, middleware,
and exception handlers configured. Process-wide services (tool
registry, stream channel, connection manager, turn handler) are created
once in the lifespan and stored on ``app.state``.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("relaychat").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from relaychat.api.routes import chat, integrations, mcp_oauth
from relaychat.db.connection import get_db_context, init_db
from relaychat.errors import ChatError
from relaychat.orchestrator.agent.model_provider import AnthropicModelProvider
from relaychat.orchestrator.agent.tools import build_tool_registry
from relaychat.services.composio_client import get_composio_client
from relaychat.services.conversation_handler import ChatTurnHandler
from relaychat.services.integration_auth import IntegrationAuthManager
from relaychat.services.stream_channel import close_stream_channel, open_stream_channel

logger = logging.getLogger(__name__)

# Module-level state for health endpoint
_startup_time: float = 0.0


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_version() -> str:
    """Installed package version, or 'unknown' when running from source."""
    try:
        return _pkg_version("relaychat")
    except Exception:
        return "unknown"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan: build shared services, then release them on shutdown."""
    global _startup_time

    # --- Startup ---
    _startup_time = _time.time()
    init_db()

    registry = build_tool_registry()
    channel = await open_stream_channel()
    composio = get_composio_client()
    auth_manager = IntegrationAuthManager(composio, session_factory=get_db_context)

    app.state.session_factory = get_db_context
    app.state.registry = registry
    app.state.stream_channel = channel
    app.state.auth_manager = auth_manager
    app.state.turn_handler = ChatTurnHandler(
        registry=registry,
        provider=AnthropicModelProvider(),
        auth_manager=auth_manager,
        composio=composio,
        channel=channel,
        session_factory=get_db_context,
    )
    logger.info(
        "RelayChat started: %d tools, stream channel=%s",
        registry.size(),
        channel.mode,
    )

    yield

    # --- Shutdown ---
    await app.state.turn_handler.shutdown()
    await close_stream_channel()


# Create FastAPI app with async lifespan for startup + shutdown
app = FastAPI(
    title="RelayChat API",
    description="Conversational automation over third-party integrations",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Last-Event-ID"],
    )


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render ChatError as {code, message, cause} with its HTTP status.

    Args:
        request: The incoming request.
        exc: The ChatError exception.

    Returns:
        JSONResponse with error details.
    """
    if exc.status_code >= 500:
        logger.error("Request to %s failed: %s", request.url.path, exc)
    return exc.to_response()


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed parameters without echoing submitted values."""
    fields = sorted({
        ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
        for err in exc.errors()
    })
    cause = f"Invalid fields: {', '.join(f for f in fields if f)}" if fields else None
    return ChatError.from_code("bad_request:api", cause=cause).to_response()


# Include routers
app.include_router(chat.router, prefix="/api/v1")
app.include_router(integrations.router, prefix="/api/v1")
app.include_router(mcp_oauth.router, prefix="/api/v1")


@app.get("/health")
def health_check(request: Request) -> dict:
    """Liveness with version, uptime, and the active stream channel mode."""
    uptime = int(_time.time() - _startup_time) if _startup_time else 0
    channel = getattr(request.app.state, "stream_channel", None)
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "healthy",
        "version": get_version(),
        "uptime_seconds": uptime,
        "stream_channel": channel.mode if channel is not None else "uninitialized",
        "tools_loaded": registry.size() if registry is not None else 0,
    }
