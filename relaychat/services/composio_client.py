"""Composio REST API client.

Wraps the three Composio endpoints RelayChat needs: listing a user's
connected accounts, starting a connection (OAuth redirect), and executing
a toolkit action on behalf of a user.

Example:
    client = ComposioClient()
    accounts = await client.list_connected_accounts("user-1")
    result = await client.execute_tool(
        "GMAIL_SEND_EMAIL", "user-1", {"recipient_email": "a@b.c", ...}
    )
"""

import logging
import os
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from relaychat.errors import ComposioConfigError, ComposioResponseError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://backend.composio.dev/api/v3"

API_KEY_MISSING_MESSAGE = "COMPOSIO_API_KEY environment variable is required"


class ConnectedAccount(BaseModel):
    """A user's connected account for one toolkit."""

    id: str
    status: str = "UNKNOWN"
    created_at: str = ""
    toolkit_slug: str = ""
    auth_config_id: str = ""


class ConnectionRequest(BaseModel):
    """Result of starting a connection flow."""

    id: str | None = None
    redirect_url: str | None = None


class ToolExecutionResult(BaseModel):
    """Normalized result of a toolkit action."""

    successful: bool
    data: Any = None
    error: str | None = None


class _ExecuteResponse(BaseModel):
    successful: bool
    data: Any = None
    error: str | None = None
    log_id: str | None = Field(default=None)


class ComposioClient:
    """Async client for the Composio v3 REST API.

    The API key is resolved on first use rather than at construction so
    the application can start without Composio configured; every call then
    fails with ComposioConfigError.

    Args:
        api_key: Explicit API key. Falls back to COMPOSIO_API_KEY.
        base_url: API base URL. Falls back to COMPOSIO_BASE_URL.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (
            base_url or os.environ.get("COMPOSIO_BASE_URL", "") or DEFAULT_BASE_URL
        ).rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _get_api_key(self) -> str:
        api_key = self._api_key or os.environ.get("COMPOSIO_API_KEY", "").strip()
        if not api_key:
            raise ComposioConfigError(API_KEY_MISSING_MESSAGE)
        return api_key

    def _get_headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._get_api_key(),
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def list_connected_accounts(self, user_id: str) -> list[ConnectedAccount]:
        """List every connected account belonging to a user.

        Args:
            user_id: RelayChat user id (Composio entity id).

        Returns:
            Connected accounts across all toolkits.

        Raises:
            ComposioConfigError: If no API key is configured.
            ComposioResponseError: On error status or malformed payload.
        """
        headers = self._get_headers()
        async with self._client() as client:
            response = await client.get(
                "/connected_accounts",
                params={"user_ids": user_id},
                headers=headers,
            )
        if response.status_code != 200:
            raise ComposioResponseError(
                f"Listing connected accounts failed with status {response.status_code}",
                status_code=response.status_code,
            )

        payload = response.json()
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise ComposioResponseError("Connected accounts response missing 'items'")

        accounts: list[ConnectedAccount] = []
        for item in items:
            if not isinstance(item, dict) or not item.get("id"):
                raise ComposioResponseError("Malformed connected account entry")
            toolkit = item.get("toolkit") or {}
            auth_config = item.get("auth_config") or {}
            accounts.append(
                ConnectedAccount(
                    id=item["id"],
                    status=item.get("status") or "UNKNOWN",
                    created_at=item.get("created_at") or "",
                    toolkit_slug=toolkit.get("slug") or "",
                    auth_config_id=auth_config.get("id") or "",
                )
            )
        return accounts

    async def initiate_connection(
        self, user_id: str, auth_config_id: str
    ) -> ConnectionRequest:
        """Start a connection flow for a user against an auth config.

        Multiple connected accounts per toolkit are allowed.

        Args:
            user_id: RelayChat user id.
            auth_config_id: Composio auth config id.

        Returns:
            ConnectionRequest with the redirect URL (may be None).

        Raises:
            ComposioConfigError: If no API key is configured.
            ComposioResponseError: On error status.
        """
        headers = self._get_headers()
        body = {
            "auth_config": {"id": auth_config_id},
            "connection": {"user_id": user_id},
        }
        async with self._client() as client:
            response = await client.post(
                "/connected_accounts", json=body, headers=headers
            )
        if response.status_code not in (200, 201):
            raise ComposioResponseError(
                f"Connection initiation failed with status {response.status_code}",
                status_code=response.status_code,
            )

        payload = response.json()
        if not isinstance(payload, dict):
            raise ComposioResponseError("Connection initiation returned a non-object body")
        return ConnectionRequest(
            id=payload.get("id"),
            redirect_url=payload.get("redirect_url") or payload.get("redirect_uri"),
        )

    async def execute_tool(
        self, tool_slug: str, user_id: str, arguments: dict[str, Any]
    ) -> ToolExecutionResult:
        """Execute a toolkit action for a user.

        Args:
            tool_slug: Composio action slug (e.g. 'GMAIL_SEND_EMAIL').
            user_id: RelayChat user id whose connection is used.
            arguments: Action arguments.

        Returns:
            ToolExecutionResult as reported by Composio.

        Raises:
            ComposioConfigError: If no API key is configured.
            ComposioResponseError: On 404 (unknown tool or connection),
                other error status, or a body without a result.
        """
        headers = self._get_headers()
        body = {"user_id": user_id, "arguments": arguments}
        async with self._client() as client:
            response = await client.post(
                f"/tools/execute/{tool_slug}", json=body, headers=headers
            )
        if response.status_code == 404:
            raise ComposioResponseError(f"Tool {tool_slug} not found", status_code=404)
        if response.status_code >= 400:
            raise ComposioResponseError(
                f"Tool {tool_slug} failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            parsed = _ExecuteResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning("Unparseable execute response for %s: %s", tool_slug, e)
            raise ComposioResponseError(f"Tool {tool_slug} returned undefined") from e

        return ToolExecutionResult(
            successful=parsed.successful, data=parsed.data, error=parsed.error
        )


_composio_client: ComposioClient | None = None


def get_composio_client() -> ComposioClient:
    """Return the process-wide Composio client, creating it on first use."""
    global _composio_client
    if _composio_client is None:
        _composio_client = ComposioClient()
    return _composio_client
