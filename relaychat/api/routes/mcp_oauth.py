"""FastAPI routes linking the MCP tool-serving gateway over OAuth.

Endpoints:
    GET /mcp/oauth/start     — 302 to the gateway's authorization URL
    GET /mcp/oauth/callback  — Check state, exchange the code, then 302 to /
    GET /mcp/oauth/status    — Whether the user must relink
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from relaychat.api.middleware.auth import require_user
from relaychat.db.connection import get_db_context
from relaychat.db.models import User
from relaychat.errors import OAuthFlowError
from relaychat.services.mcp_oauth import (
    CALLBACK_PATH,
    DatabaseTokenStorage,
    McpOAuthFlow,
    should_relink,
)
from relaychat.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mcp/oauth", tags=["mcp"])


def _origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


def _storage(request: Request, user: User) -> DatabaseTokenStorage:
    session_factory = getattr(request.app.state, "session_factory", get_db_context)
    return DatabaseTokenStorage(user.id, session_factory=session_factory)


def get_oauth_flow(request: Request, user: User = Depends(require_user)) -> McpOAuthFlow:
    """OAuth flow for the current user."""
    callback_url = f"{_origin(request)}{CALLBACK_PATH}"
    return McpOAuthFlow(user.id, callback_url, storage=_storage(request, user))


@router.get("/start")
async def start_mcp_oauth(flow: McpOAuthFlow = Depends(get_oauth_flow)):
    """Redirect the browser to the gateway's authorization page."""
    try:
        authorization_url = await flow.start_authorization()
    except OAuthFlowError as e:
        logger.error("MCP OAuth start failed: %s", sanitize_error_message(str(e)))
        return PlainTextResponse(f"OAuth error: {sanitize_error_message(str(e))}", status_code=502)
    return RedirectResponse(authorization_url, status_code=302)


@router.get("/callback")
async def mcp_oauth_callback(
    request: Request,
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    flow: McpOAuthFlow = Depends(get_oauth_flow),
):
    """Finish the authorization-code exchange and return to the app."""
    if error:
        return PlainTextResponse(f"OAuth error: {error}", status_code=400)
    if not code:
        return PlainTextResponse("Missing authorization code", status_code=400)

    try:
        await flow.finish_authorization(code, state)
    except OAuthFlowError as e:
        logger.error("MCP OAuth callback failed: %s", sanitize_error_message(str(e)))
        return PlainTextResponse(f"OAuth error: {sanitize_error_message(str(e))}", status_code=400)
    return RedirectResponse(f"{_origin(request)}/", status_code=302)


@router.get("/status")
def mcp_oauth_status(request: Request, user: User = Depends(require_user)):
    """Report whether the gateway link is missing or about to expire."""
    tokens, updated_at = _storage(request, user).get_raw_tokens()
    return JSONResponse({"relink": should_relink(tokens, updated_at)})
