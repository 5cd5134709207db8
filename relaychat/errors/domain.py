"""Typed domain exceptions for integration, tool, and stream failures.

These exceptions carry enough context for routes to pick an HTTP status
and for tool adapters to render a user-facing message. Tool execution
failures never appear here: adapters convert them to error outcomes.

Usage:
    # In service layer
    raise NotConfiguredError("Gmail")

    # In route handler
    try:
        info = await manager.initiate_auth(user_id, integration)
    except NotConfiguredError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotConfiguredError(DomainError):
    """Integration unknown or missing its auth-config id. Maps to HTTP 400."""

    def __init__(self, integration_name: str) -> None:
        super().__init__(f"Integration {integration_name} not configured")
        self.integration_name = integration_name


class NoRedirectUrlError(DomainError):
    """Backend accepted a connection request without a redirect URL."""

    def __init__(self, integration_name: str) -> None:
        super().__init__(
            f"No redirect URL received from Composio for {integration_name}"
        )
        self.integration_name = integration_name


class AuthInitiationFailedError(DomainError):
    """Backend refused or failed to start an authorization flow."""

    def __init__(self, integration_name: str, reason: str) -> None:
        super().__init__(
            f"Failed to initiate authentication for {integration_name}: {reason}"
        )
        self.integration_name = integration_name
        self.reason = reason


class ConnectionTimeoutError(DomainError):
    """Polling for a completed connection was exhausted. Maps to HTTP 408."""

    def __init__(self, integration_name: str, attempts: int) -> None:
        super().__init__(
            f"Connection timeout for {integration_name} after {attempts} attempts"
        )
        self.integration_name = integration_name
        self.attempts = attempts


class ToolNotFoundError(DomainError):
    """Requested tool name is not in the registry."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool '{tool_name}' not found")
        self.tool_name = tool_name


class ChannelUnavailableError(DomainError):
    """Durable stream backing is unreachable."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Stream channel unavailable: {reason}")
        self.reason = reason


class ComposioConfigError(DomainError):
    """Composio client is missing required configuration."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ComposioResponseError(DomainError):
    """Composio returned an error status or a malformed payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class OAuthFlowError(DomainError):
    """OAuth client flow with the tool-serving gateway failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
