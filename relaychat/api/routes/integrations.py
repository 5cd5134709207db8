"""FastAPI routes for third-party integration connections.

Endpoints:
    GET  /integrations                        — Catalog with connection state
    POST /integrations/auth                   — Start (or reuse) an authorization flow
    GET  /integrations/auth?integration=&wait= — Connection status, optionally waiting

Unexpected errors are returned as a structured 500 envelope; secrets in
exception text are redacted before they reach the response.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from relaychat.api.middleware.auth import require_user
from relaychat.api.schemas import (
    ConnectionStatusResponse,
    IntegrationAuthRequest,
    IntegrationAuthResponse,
    IntegrationListResponse,
)
from relaychat.db.models import User
from relaychat.errors import (
    AuthInitiationFailedError,
    ConnectionTimeoutError,
    NoRedirectUrlError,
    NotConfiguredError,
)
from relaychat.services.integration_auth import IntegrationAuthManager
from relaychat.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])


def get_auth_manager(request: Request) -> IntegrationAuthManager:
    """Process-wide connection manager created in the app lifespan."""
    return request.app.state.auth_manager


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _internal_error(e: Exception, operation: str) -> JSONResponse:
    """Build a structured 500 response and log the full traceback.

    Args:
        e: The exception that was raised.
        operation: Human-readable operation name for the log message.

    Returns:
        JSONResponse with error envelope.
    """
    logger.error(
        "Unexpected error during %s: %s: %s",
        operation, type(e).__name__, sanitize_error_message(str(e)),
        exc_info=True,
    )
    return _error(500, "INTERNAL_ERROR", sanitize_error_message(str(e)) or "Internal error")


@router.get("", response_model=IntegrationListResponse)
async def list_integrations(
    user: User = Depends(require_user),
    manager: IntegrationAuthManager = Depends(get_auth_manager),
):
    """List integrations that need authorization, with the user's connection state."""
    try:
        return {"integrations": await manager.list_integrations(user.id)}
    except Exception as e:
        return _internal_error(e, "list integrations")


@router.post("/auth", response_model=IntegrationAuthResponse)
async def start_integration_auth(
    request: Request,
    user: User = Depends(require_user),
    manager: IntegrationAuthManager = Depends(get_auth_manager),
):
    """Start an authorization flow and return the URL to send the user to."""
    try:
        body = IntegrationAuthRequest.model_validate(await request.json())
    except (ValidationError, ValueError):
        return _error(400, "BAD_REQUEST", "Integration name is required")

    try:
        info = await manager.initiate_auth(user.id, body.integration)
    except NotConfiguredError as e:
        return _error(400, "NOT_CONFIGURED", str(e))
    except (AuthInitiationFailedError, NoRedirectUrlError) as e:
        logger.error("Error initiating auth: %s", sanitize_error_message(str(e)))
        return _error(502, "AUTH_INITIATION_FAILED", sanitize_error_message(str(e)))
    except Exception as e:
        return _internal_error(e, "initiate auth")

    return {"redirectUrl": info.redirect_url, "integration": info.integration}


@router.get("/auth", response_model=ConnectionStatusResponse, response_model_exclude_none=True)
async def get_integration_auth_status(
    integration: str | None = Query(default=None),
    wait: bool = Query(default=False),
    user: User = Depends(require_user),
    manager: IntegrationAuthManager = Depends(get_auth_manager),
):
    """Report connection status; with wait=true, block until connected or timeout."""
    if not integration:
        return _error(400, "BAD_REQUEST", "Integration parameter is required")

    try:
        if wait:
            status = await manager.wait_for_connection(user.id, integration)
        else:
            status = await manager.get_connection_status(user.id, integration)
    except ConnectionTimeoutError as e:
        return _error(
            408,
            "CONNECTION_TIMEOUT",
            f"{e}. Complete authorization in the opened window, then check again.",
        )
    except Exception as e:
        return _internal_error(e, "check connection status")

    return status.to_dict()
