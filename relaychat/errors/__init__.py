"""Error handling framework for RelayChat.

This package provides:
- Error code registry with "<type>:<surface>" codes
- ChatError exception rendered as JSON at the request boundary
- Typed domain exceptions for integrations, tools, and streams
"""

from relaychat.errors.domain import (
    AuthInitiationFailedError,
    ChannelUnavailableError,
    ComposioConfigError,
    ComposioResponseError,
    ConnectionTimeoutError,
    DomainError,
    NoRedirectUrlError,
    NotConfiguredError,
    OAuthFlowError,
    ToolNotFoundError,
)
from relaychat.errors.formatter import ChatError
from relaychat.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Formatter
    "ChatError",
    # Domain
    "DomainError",
    "NotConfiguredError",
    "NoRedirectUrlError",
    "AuthInitiationFailedError",
    "ConnectionTimeoutError",
    "ToolNotFoundError",
    "ChannelUnavailableError",
    "ComposioConfigError",
    "ComposioResponseError",
    "OAuthFlowError",
]
