"""Per-user, per-integration connection lifecycle.

Resolves whether a user has connected a third-party account, starts OAuth
redirects through Composio, and polls for completion. The persisted
UserIntegration row is authoritative once written: status lookups only
consult Composio when no row exists, and persist the first positive
answer.

Example:
    manager = IntegrationAuthManager(get_composio_client())
    status = await manager.get_connection_status(user_id, "Gmail")
    if not status.connected:
        info = await manager.initiate_auth(user_id, "Gmail")
        # send info.redirect_url to the user
        await manager.wait_for_connection(user_id, "Gmail")
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from relaychat.db.connection import get_db_context
from relaychat.db.models import AuthRequest, UserIntegration, utc_now_iso
from relaychat.errors import (
    AuthInitiationFailedError,
    ConnectionTimeoutError,
    NoRedirectUrlError,
    NotConfiguredError,
)
from relaychat.services.composio_client import ComposioClient
from relaychat.services.integration_catalog import (
    Integration,
    get_integration,
    get_integrations,
)
from relaychat.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

AUTH_REQUEST_TTL = timedelta(minutes=10)
WAIT_MAX_ATTEMPTS = 30
WAIT_POLL_INTERVAL_SECONDS = 1.0

SessionFactory = Callable[[], AbstractContextManager[Session]]


@dataclass
class ConnectionStatus:
    """Connection state for one (user, integration) pair."""

    integration: str
    connected: bool
    connection_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        result: dict = {
            "integration": self.integration,
            "connected": self.connected,
            "connectionId": self.connection_id,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class AuthRequestInfo:
    """A live authorization redirect for the user to follow."""

    integration: str
    redirect_url: str
    expires_at: str


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class IntegrationAuthManager:
    """Connection lifecycle manager for catalog integrations.

    Positive statuses are additionally cached in memory per process. The
    cache is never expired in the background; clear_cache() drops entries
    while leaving persisted rows untouched.

    Args:
        composio: Composio REST client.
        session_factory: Callable returning a session context manager.
            Defaults to get_db_context (commit on success).
        max_attempts: Polls performed by wait_for_connection.
        poll_interval: Seconds between polls.
    """

    def __init__(
        self,
        composio: ComposioClient,
        session_factory: SessionFactory = get_db_context,
        max_attempts: int = WAIT_MAX_ATTEMPTS,
        poll_interval: float = WAIT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._composio = composio
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._poll_interval = poll_interval
        self._cache: dict[tuple[str, str], ConnectionStatus] = {}
        self._initiate_locks: dict[tuple[str, str], asyncio.Lock] = {}

    def get_integration(self, integration_name: str) -> Integration | None:
        """Look up a catalog entry by name."""
        return get_integration(integration_name)

    async def get_connection_status(
        self, user_id: str, integration_name: str
    ) -> ConnectionStatus:
        """Resolve whether a user has connected an integration.

        A persisted record is returned as-is. Without one, Composio is
        queried; if any connected account matches the integration's toolkit
        slug or auth config id, a record for the most recent match is
        persisted and the status is reported connected.

        Backend errors never raise; they are logged and reported as
        ``connected=False`` with ``error`` set.

        Args:
            user_id: Owning user.
            integration_name: Catalog name.

        Returns:
            ConnectionStatus for the pair.
        """
        cache_key = (user_id, integration_name)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            with self._session_factory() as db:
                record = db.execute(
                    select(UserIntegration).where(
                        UserIntegration.user_id == user_id,
                        UserIntegration.integration_name == integration_name,
                    )
                ).scalar_one_or_none()
                if record is not None:
                    status = ConnectionStatus(
                        integration=integration_name,
                        connected=record.is_connected,
                        connection_id=record.connection_id,
                    )
                    if status.connected:
                        self._cache[cache_key] = status
                    return status

            integration = get_integration(integration_name)
            if integration is None:
                raise NotConfiguredError(integration_name)

            accounts = await self._composio.list_connected_accounts(user_id)
            relevant = [
                account
                for account in accounts
                if account.toolkit_slug == integration.app_id
                or (
                    integration.auth_config_id is not None
                    and account.auth_config_id == integration.auth_config_id
                )
            ]
            logger.info(
                "Found %d connections for %s (user=%s): %s",
                len(relevant),
                integration_name,
                user_id,
                [(a.id, a.toolkit_slug, a.status) for a in relevant],
            )

            if not relevant:
                return ConnectionStatus(integration=integration_name, connected=False)

            relevant.sort(key=lambda a: a.created_at, reverse=True)
            latest = relevant[0]
            self._save_connection(user_id, integration, latest.id, relevant)

            status = ConnectionStatus(
                integration=integration_name,
                connected=True,
                connection_id=latest.id,
            )
            self._cache[cache_key] = status
            return status
        except Exception as e:
            logger.error(
                "Error checking connection status for %s: %s",
                integration_name,
                sanitize_error_message(str(e)),
            )
            return ConnectionStatus(
                integration=integration_name,
                connected=False,
                error=str(e) or type(e).__name__,
            )

    def _save_connection(
        self,
        user_id: str,
        integration: Integration,
        connection_id: str,
        relevant: list,
    ) -> None:
        latest = relevant[0]
        metadata = {
            "toolkit": latest.toolkit_slug,
            "status": latest.status,
            "totalConnections": len(relevant),
            "connectionIds": [account.id for account in relevant],
        }
        with self._session_factory() as db:
            record = db.execute(
                select(UserIntegration).where(
                    UserIntegration.user_id == user_id,
                    UserIntegration.integration_name == integration.name,
                )
            ).scalar_one_or_none()
            if record is None:
                record = UserIntegration(
                    user_id=user_id,
                    integration_name=integration.name,
                )
                db.add(record)
            record.connection_id = connection_id
            record.auth_config_id = integration.auth_config_id
            record.is_connected = True
            record.metadata_json = json.dumps(metadata)
            record.updated_at = utc_now_iso()
            db.commit()

    async def initiate_auth(
        self, user_id: str, integration_name: str
    ) -> AuthRequestInfo:
        """Start (or reuse) an authorization redirect.

        A live request for the pair is returned unchanged. An expired one
        is deleted and a new flow is started.

        Args:
            user_id: Owning user.
            integration_name: Catalog name.

        Returns:
            AuthRequestInfo with the redirect URL and expiry.

        Raises:
            NotConfiguredError: Unknown integration or no auth config id.
            NoRedirectUrlError: Composio returned no redirect URL.
            AuthInitiationFailedError: Any other backend failure.
        """
        integration = get_integration(integration_name)
        if integration is None or not integration.auth_config_id:
            raise NotConfiguredError(integration_name)

        # Concurrent starts for one pair share the first caller's request.
        key = (user_id, integration_name)
        lock = self._initiate_locks.setdefault(key, asyncio.Lock())
        async with lock:
            return await self._initiate(user_id, integration)

    async def _initiate(self, user_id: str, integration: Integration) -> AuthRequestInfo:
        integration_name = integration.name
        now = datetime.now(UTC)
        with self._session_factory() as db:
            existing = db.execute(
                select(AuthRequest)
                .where(
                    AuthRequest.user_id == user_id,
                    AuthRequest.integration_name == integration_name,
                )
                .order_by(AuthRequest.created_at.desc())
            ).scalars().all()
            for request in existing:
                if _parse_iso(request.expires_at) > now:
                    return AuthRequestInfo(
                        integration=request.integration_name,
                        redirect_url=request.redirect_url,
                        expires_at=request.expires_at,
                    )
                db.delete(request)
            db.commit()

        logger.info(
            "Initiating auth for %s with config %s",
            integration_name,
            integration.auth_config_id,
        )
        try:
            connection_request = await self._composio.initiate_connection(
                user_id, integration.auth_config_id
            )
        except Exception as e:
            logger.error(
                "Error initiating auth for %s: %s",
                integration_name,
                sanitize_error_message(str(e)),
            )
            raise AuthInitiationFailedError(integration_name, str(e)) from e

        if not connection_request.redirect_url:
            raise NoRedirectUrlError(integration_name)

        expires_at = (now + AUTH_REQUEST_TTL).isoformat()
        request_id = f"{user_id}:{integration_name}:{int(time.time() * 1000)}"
        with self._session_factory() as db:
            db.add(
                AuthRequest(
                    request_id=request_id,
                    user_id=user_id,
                    integration_name=integration_name,
                    redirect_url=connection_request.redirect_url,
                    expires_at=expires_at,
                )
            )
            db.commit()

        return AuthRequestInfo(
            integration=integration_name,
            redirect_url=connection_request.redirect_url,
            expires_at=expires_at,
        )

    async def wait_for_connection(
        self, user_id: str, integration_name: str
    ) -> ConnectionStatus:
        """Poll until the user completes authorization.

        Bounded and cancellable: polls at a fixed interval and raises after
        the configured number of attempts. Callers should treat a timeout
        as "ask the user to retry".

        Args:
            user_id: Owning user.
            integration_name: Catalog name.

        Returns:
            The first connected ConnectionStatus observed.

        Raises:
            ConnectionTimeoutError: No connection after all attempts.
        """
        for attempt in range(self._max_attempts):
            status = await self.get_connection_status(user_id, integration_name)
            if status.connected:
                self._cleanup_auth_requests(user_id, integration_name)
                return status
            if attempt < self._max_attempts - 1:
                await asyncio.sleep(self._poll_interval)

        raise ConnectionTimeoutError(integration_name, self._max_attempts)

    def _cleanup_auth_requests(self, user_id: str, integration_name: str) -> None:
        try:
            with self._session_factory() as db:
                requests = db.execute(
                    select(AuthRequest).where(
                        AuthRequest.user_id == user_id,
                        AuthRequest.integration_name == integration_name,
                    )
                ).scalars().all()
                for request in requests:
                    db.delete(request)
                db.commit()
        except Exception as e:
            logger.warning("Error cleaning up auth request for %s: %s", integration_name, e)

    def clear_cache(self, user_id: str, integration_name: str | None = None) -> None:
        """Drop cached statuses for one or all integrations of a user.

        Persisted connection records are not touched.
        """
        if integration_name is not None:
            self._cache.pop((user_id, integration_name), None)
            return
        for key in [k for k in self._cache if k[0] == user_id]:
            del self._cache[key]

    async def list_integrations(self, user_id: str) -> list[dict]:
        """List catalog integrations that need authorization, with status.

        Args:
            user_id: User whose connections are reported.

        Returns:
            List of integration dicts with a ``connected`` flag.
        """
        integrations = [i for i in get_integrations() if i.requires_auth]
        statuses = await asyncio.gather(
            *(self.get_connection_status(user_id, i.name) for i in integrations)
        )
        return [
            integration.to_dict(connected=status.connected)
            for integration, status in zip(integrations, statuses)
        ]
