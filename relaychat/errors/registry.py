"""Error code registry with "<type>:<surface>" format codes.

This module defines the request-boundary error codes for RelayChat. A code
pairs an error type with the surface it occurred on:
- bad_request: Malformed input (400)
- unauthorized: No authenticated session (401)
- forbidden: Session present, wrong owner (403)
- not_found: Unknown resource (404)
- rate_limit: Daily message quota exceeded (429)
- offline: Upstream dependency unreachable (503)

Each error includes a code, HTTP status, message, and remediation. Errors
raised mid-turn never use this registry; they become stream content.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    OFFLINE = "offline"


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in "<type>:<surface>" format.
        category: Error category for grouping.
        status_code: HTTP status the code maps to.
        message: User-facing message.
        remediation: Action user should take to resolve.
    """

    code: str
    category: ErrorCategory
    status_code: int
    message: str
    remediation: str


# Error registry - all defined error codes
ERROR_REGISTRY: dict[str, ErrorCode] = {
    "bad_request:api": ErrorCode(
        code="bad_request:api",
        category=ErrorCategory.BAD_REQUEST,
        status_code=400,
        message="The request couldn't be processed. Please check your input and try again.",
        remediation="Fix the request body or query parameters and retry.",
    ),
    "unauthorized:auth": ErrorCode(
        code="unauthorized:auth",
        category=ErrorCategory.UNAUTHORIZED,
        status_code=401,
        message="You need to sign in before continuing.",
        remediation="Send a valid bearer token in the Authorization header.",
    ),
    "unauthorized:chat": ErrorCode(
        code="unauthorized:chat",
        category=ErrorCategory.UNAUTHORIZED,
        status_code=401,
        message="You need to sign in to view this chat. Please sign in and try again.",
        remediation="Send a valid bearer token in the Authorization header.",
    ),
    "forbidden:chat": ErrorCode(
        code="forbidden:chat",
        category=ErrorCategory.FORBIDDEN,
        status_code=403,
        message="This chat belongs to another user. Please check the chat ID and try again.",
        remediation="Use a chat id you own, or start a new chat.",
    ),
    "not_found:chat": ErrorCode(
        code="not_found:chat",
        category=ErrorCategory.NOT_FOUND,
        status_code=404,
        message="The requested chat was not found. Please check the chat ID and try again.",
        remediation="Verify the chat id.",
    ),
    "rate_limit:chat": ErrorCode(
        code="rate_limit:chat",
        category=ErrorCategory.RATE_LIMIT,
        status_code=429,
        message="You have exceeded your maximum number of messages for the day. Please try again later.",
        remediation="Wait for the 24-hour window to roll over or upgrade the account tier.",
    ),
    "offline:chat": ErrorCode(
        code="offline:chat",
        category=ErrorCategory.OFFLINE,
        status_code=503,
        message="We're having trouble sending your message. Please check your connection and try again.",
        remediation="Retry once the service is reachable.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Look up error code definition.

    Args:
        code: Error code in "<type>:<surface>" format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all error codes in a category.

    Args:
        category: ErrorCategory to filter by.

    Returns:
        List of ErrorCode objects in the category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
