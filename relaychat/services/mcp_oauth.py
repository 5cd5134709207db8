"""OAuth linking for the MCP tool-serving gateway.

Implements the authorization-code + PKCE flow against the gateway's
authorization server, split across two HTTP requests:

1. start_authorization(): discover server metadata, register a client
   dynamically on first use, save a PKCE code verifier and state, and
   return the authorization URL to redirect the browser to.
2. finish_authorization(code, state): check the returned state against the
   saved one, exchange the code for tokens with the saved verifier, and
   persist them (clearing the pending authorization).

Client information, tokens, and the pending verifier and state are
persisted per (user, provider) in mcp_oauth_states, so both halves can run
in different requests or processes.

Example:
    flow = McpOAuthFlow(user_id, callback_url)
    url = await flow.start_authorization()
    ...
    await flow.finish_authorization(code, state)
"""

import hmac
import json
import logging
import os
import secrets
import time
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any
from urllib.parse import urlencode, urlparse

import httpx
import jwt
from mcp.client.auth import PKCEParameters
from mcp.shared.auth import (
    OAuthClientInformationFull,
    OAuthClientMetadata,
    OAuthMetadata,
    OAuthToken,
)
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from relaychat.db.connection import get_db_context
from relaychat.db.models import McpOAuthState, utc_now_iso
from relaychat.errors import OAuthFlowError
from relaychat.utils.redaction import redact_for_logging, sanitize_error_message

logger = logging.getLogger(__name__)

DEFAULT_MCP_SERVER = "https://rube.app/mcp"
MCP_PROVIDER = "rube"
MCP_CLIENT_NAME = "RelayChat MCP Client"
MCP_SCOPE = "mcp:tools"
CALLBACK_PATH = "/api/v1/mcp/oauth/callback"
RELINK_SKEW_SECONDS = 60


def get_mcp_server_url() -> str:
    """Gateway URL from MCP_SERVER."""
    return os.environ.get("MCP_SERVER") or DEFAULT_MCP_SERVER


def build_client_metadata(callback_url: str) -> OAuthClientMetadata:
    """Dynamic client registration metadata for this deployment."""
    return OAuthClientMetadata(
        client_name=MCP_CLIENT_NAME,
        redirect_uris=[callback_url],
        grant_types=["authorization_code", "refresh_token"],
        response_types=["code"],
        token_endpoint_auth_method="client_secret_post",
        scope=MCP_SCOPE,
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class DatabaseTokenStorage:
    """Per-user OAuth state backed by mcp_oauth_states.

    Satisfies the mcp client TokenStorage protocol (get_tokens,
    set_tokens, get_client_info, set_client_info) and additionally keeps
    the PKCE code verifier and OAuth state between the start and callback
    requests.

    Args:
        user_id: Owner of the link.
        provider: Gateway provider key.
        session_factory: Context manager yielding a DB session.
    """

    def __init__(
        self,
        user_id: str,
        provider: str = MCP_PROVIDER,
        session_factory: Callable[[], AbstractContextManager[Session]] = get_db_context,
    ) -> None:
        self.user_id = user_id
        self.provider = provider
        self._session_factory = session_factory

    def _load(self, db: Session) -> McpOAuthState | None:
        return db.execute(
            select(McpOAuthState).where(
                McpOAuthState.user_id == self.user_id,
                McpOAuthState.provider == self.provider,
            )
        ).scalar_one_or_none()

    def _upsert(self, **fields: Any) -> None:
        with self._session_factory() as db:
            row = self._load(db)
            if row is None:
                row = McpOAuthState(user_id=self.user_id, provider=self.provider)
                db.add(row)
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_at = utc_now_iso()

    def get_raw_tokens(self) -> tuple[dict[str, Any] | None, str | None]:
        """Stored token response and its last update time."""
        with self._session_factory() as db:
            row = self._load(db)
            if row is None or not row.tokens_json:
                return None, None
            return json.loads(row.tokens_json), row.updated_at

    async def get_tokens(self) -> OAuthToken | None:
        tokens, _ = self.get_raw_tokens()
        if tokens is None:
            return None
        return OAuthToken.model_validate(tokens)

    async def set_tokens(self, tokens: OAuthToken | dict[str, Any]) -> None:
        """Persist tokens and clear the pending authorization."""
        if isinstance(tokens, OAuthToken):
            tokens = tokens.model_dump(mode="json", exclude_none=True)
        self._upsert(tokens_json=json.dumps(tokens), code_verifier=None, oauth_state=None)

    async def get_client_info(self) -> OAuthClientInformationFull | None:
        with self._session_factory() as db:
            row = self._load(db)
            if row is None or not row.client_information_json:
                return None
            raw = row.client_information_json
        return OAuthClientInformationFull.model_validate_json(raw)

    async def set_client_info(self, client_info: OAuthClientInformationFull) -> None:
        self._upsert(
            client_information_json=client_info.model_dump_json(exclude_none=True)
        )

    def save_pending_authorization(self, code_verifier: str, state: str) -> None:
        self._upsert(code_verifier=code_verifier, oauth_state=state)

    def pending_authorization(self) -> tuple[str, str | None]:
        """Saved PKCE verifier and OAuth state.

        Raises:
            OAuthFlowError: If no authorization was started.
        """
        with self._session_factory() as db:
            row = self._load(db)
            if row is None or not row.code_verifier:
                raise OAuthFlowError("No code verifier saved")
            return row.code_verifier, row.oauth_state


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------


class McpOAuthFlow:
    """Authorization-code + PKCE flow against the MCP gateway.

    Args:
        user_id: User linking the gateway.
        callback_url: Absolute redirect URI registered for the client.
        server_url: Gateway URL. Defaults to MCP_SERVER.
        storage: OAuth state storage. Defaults to DatabaseTokenStorage.
        transport: Optional httpx transport (tests).
    """

    def __init__(
        self,
        user_id: str,
        callback_url: str,
        server_url: str | None = None,
        storage: DatabaseTokenStorage | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_id = user_id
        self.callback_url = callback_url
        self.server_url = server_url or get_mcp_server_url()
        self.storage = storage or DatabaseTokenStorage(user_id)
        self.client_metadata = build_client_metadata(callback_url)
        self._transport = transport

    @property
    def server_origin(self) -> str:
        parsed = urlparse(self.server_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30.0, transport=self._transport)

    async def discover_metadata(self, client: httpx.AsyncClient) -> OAuthMetadata:
        """Fetch authorization server metadata, with default endpoints as fallback."""
        origin = self.server_origin
        url = f"{origin}/.well-known/oauth-authorization-server"
        response = await client.get(url, headers={"MCP-Protocol-Version": "2025-03-26"})
        if response.status_code == 200:
            try:
                return OAuthMetadata.model_validate(response.json())
            except (ValidationError, ValueError) as e:
                raise OAuthFlowError(f"Invalid authorization server metadata: {e}") from e
        if response.status_code != 404:
            raise OAuthFlowError(
                f"Metadata discovery failed with HTTP {response.status_code}"
            )
        logger.info("No OAuth metadata at %s, using default endpoints", origin)
        return OAuthMetadata(
            issuer=origin,
            authorization_endpoint=f"{origin}/authorize",
            token_endpoint=f"{origin}/token",
            registration_endpoint=f"{origin}/register",
        )

    async def _register_client(
        self,
        client: httpx.AsyncClient,
        metadata: OAuthMetadata,
    ) -> OAuthClientInformationFull:
        existing = await self.storage.get_client_info()
        if existing is not None:
            return existing

        if metadata.registration_endpoint is None:
            raise OAuthFlowError("Authorization server does not support client registration")

        response = await client.post(
            str(metadata.registration_endpoint),
            json=self.client_metadata.model_dump(mode="json", exclude_none=True),
        )
        if response.status_code not in (200, 201):
            raise OAuthFlowError(
                f"Client registration failed with HTTP {response.status_code}: "
                f"{sanitize_error_message(response.text)}"
            )
        try:
            info = OAuthClientInformationFull.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            raise OAuthFlowError(f"Invalid client registration response: {e}") from e
        await self.storage.set_client_info(info)
        logger.info("Registered MCP OAuth client for user %s", self.user_id)
        return info

    async def start_authorization(self) -> str:
        """Prepare the flow and return the authorization URL.

        Raises:
            OAuthFlowError: On discovery or registration failure.
        """
        async with self._client() as client:
            metadata = await self.discover_metadata(client)
            info = await self._register_client(client, metadata)

        pkce = PKCEParameters.generate()
        state = secrets.token_urlsafe(32)
        self.storage.save_pending_authorization(pkce.code_verifier, state)

        params = {
            "response_type": "code",
            "client_id": info.client_id,
            "redirect_uri": self.callback_url,
            "code_challenge": pkce.code_challenge,
            "code_challenge_method": "S256",
            "state": state,
            "scope": MCP_SCOPE,
        }
        return f"{metadata.authorization_endpoint}?{urlencode(params)}"

    async def finish_authorization(self, code: str, state: str | None) -> dict[str, Any]:
        """Exchange an authorization code for tokens and persist them.

        Args:
            code: Authorization code from the callback.
            state: OAuth state echoed back by the authorization server.

        Returns:
            The token response as stored.

        Raises:
            OAuthFlowError: If no flow was started, the state does not match
                the one issued by start_authorization(), or the exchange fails.
        """
        verifier, expected_state = self.storage.pending_authorization()
        if not expected_state or not state or not hmac.compare_digest(state, expected_state):
            raise OAuthFlowError("OAuth state mismatch")
        info = await self.storage.get_client_info()
        if info is None:
            raise OAuthFlowError("No registered client for this user")

        async with self._client() as client:
            metadata = await self.discover_metadata(client)
            form = {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.callback_url,
                "client_id": info.client_id,
                "code_verifier": verifier,
            }
            if info.client_secret:
                form["client_secret"] = info.client_secret
            response = await client.post(
                str(metadata.token_endpoint),
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )

        if response.status_code != 200:
            raise OAuthFlowError(
                f"Token exchange failed with HTTP {response.status_code}: "
                f"{sanitize_error_message(response.text)}"
            )
        try:
            tokens = response.json()
            OAuthToken.model_validate(tokens)
        except (ValidationError, ValueError) as e:
            raise OAuthFlowError(f"Invalid token response: {e}") from e

        logger.debug("MCP token response: %s", redact_for_logging(tokens))
        await self.storage.set_tokens(tokens)
        logger.info("Linked MCP gateway for user %s", self.user_id)
        return tokens


# ---------------------------------------------------------------------------
# Relink check
# ---------------------------------------------------------------------------


def _jwt_exp(token: Any) -> int | None:
    if not isinstance(token, str):
        return None
    # Expiry only; the signature is not checked.
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    exp = claims.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        return int(exp)
    return None


def should_relink(
    tokens: dict[str, Any] | None,
    updated_at: str | None,
    skew_seconds: int = RELINK_SKEW_SECONDS,
    now: float | None = None,
) -> bool:
    """Whether the user must redo the OAuth link.

    Args:
        tokens: Stored token response, or None if never linked.
        updated_at: ISO timestamp of when tokens were stored.
        skew_seconds: Safety margin before expiry.
        now: Current epoch seconds (defaults to time.time()).

    Returns:
        True when no tokens exist or they expire within the skew. Tokens
        without any expiry signal are treated as valid.
    """
    if not tokens:
        return True
    now_sec = int(now if now is not None else time.time())

    exp = _jwt_exp(tokens.get("id_token"))
    if exp is not None:
        return now_sec + skew_seconds >= exp

    expires_in = tokens.get("expires_in")
    if isinstance(expires_in, (int, float)) and updated_at:
        try:
            issued = int(datetime.fromisoformat(updated_at).timestamp())
        except ValueError:
            return False
        return now_sec + skew_seconds >= issued + int(expires_in)

    return False

