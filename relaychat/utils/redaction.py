"""Redaction helpers for agent telemetry, OAuth payloads, and error text.

Tool inputs are logged on every agent step and OAuth token sets pass
through the gateway routes, so both go through here before reaching a
log line or a response body. Key matching is case-insensitive substring
matching; nested dicts and lists are walked recursively.
"""

import re
from typing import Any

# Substring patterns matched case-insensitively against dict keys
_DEFAULT_SENSITIVE_PATTERNS = frozenset({
    "secret", "token", "authorization", "api_key", "apikey", "password",
    "credential", "code_verifier", "cookie",
})

# Keys whose entire value is redacted regardless of content type
_CONTAINER_KEYS = frozenset({"headers", "tokens", "client_information"})

_REDACTED = "***REDACTED***"

# Longest string value kept verbatim in telemetry (email bodies, doc text)
_MAX_VALUE_CHARS = 200


def _is_sensitive_key(key: str, sensitive_patterns: frozenset[str]) -> bool:
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in sensitive_patterns)


def _redact_value(value: Any, sensitive_patterns: frozenset[str], max_chars: int | None) -> Any:
    if isinstance(value, dict):
        return redact_for_logging(value, sensitive_patterns, max_chars)
    if isinstance(value, list):
        return [_redact_value(item, sensitive_patterns, max_chars) for item in value]
    if max_chars is not None and isinstance(value, str) and len(value) > max_chars:
        return f"{value[:max_chars]}...({len(value)} chars)"
    return value


def redact_for_logging(
    obj: dict,
    sensitive_patterns: frozenset[str] = _DEFAULT_SENSITIVE_PATTERNS,
    max_chars: int | None = None,
) -> dict:
    """Redact sensitive values from a dict for safe logging.

    Args:
        obj: Dict to redact. Not mutated; a copy is returned.
        sensitive_patterns: Substring patterns whose matching keys' values
            are replaced. Matching is case-insensitive.
        max_chars: When set, long string values are truncated to this
            many characters with the original length appended.

    Returns:
        New dict with sensitive values replaced by '***REDACTED***'.
    """
    result = {}
    for key, value in obj.items():
        key_str = str(key)
        if key_str.lower() in _CONTAINER_KEYS:
            result[key] = _REDACTED
        elif _is_sensitive_key(key_str, sensitive_patterns):
            result[key] = _REDACTED
        else:
            result[key] = _redact_value(value, sensitive_patterns, max_chars)
    return result


def redact_tool_input(tool_input: Any) -> Any:
    """Prepare a model-supplied tool input for step telemetry.

    Secrets are masked and long free-text fields are truncated so a
    single step log line stays readable.

    Args:
        tool_input: Raw tool input, usually a dict.

    Returns:
        Redacted copy suitable for logging.
    """
    if isinstance(tool_input, dict):
        return redact_for_logging(tool_input, max_chars=_MAX_VALUE_CHARS)
    return _redact_value(tool_input, _DEFAULT_SENSITIVE_PATTERNS, _MAX_VALUE_CHARS)


_SENSITIVE_KEYWORDS = (
    r"secret|token|password|api_key|x-api-key|client_secret|"
    r"access_token|refresh_token|id_token|code_verifier|authorization"
)
_SENSITIVE_VALUE_PATTERNS = re.compile(
    r"(?i)"
    r"(?:"
    # Authorization: Bearer <token>
    r"Authorization\s*:\s*Bearer\s+\S+"
    r"|"
    # "key": "value"
    r'"(?:' + _SENSITIVE_KEYWORDS + r')"\s*:\s*"[^"]*"'
    r"|"
    # key="quoted value"
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\"[^\"]*\""
    r"|"
    # key=value
    r"(?:" + _SENSITIVE_KEYWORDS + r")\s*[=:]\s*\S+"
    r")",
)


def sanitize_error_message(msg: str | None, max_length: int = 500) -> str | None:
    """Sanitize an error message before it is logged or returned.

    Args:
        msg: Error message to sanitize (None passes through).
        max_length: Maximum length of the sanitized message.

    Returns:
        Message with credential-looking fragments masked and truncated,
        or None.
    """
    if msg is None:
        return None
    sanitized = _SENSITIVE_VALUE_PATTERNS.sub(_REDACTED, msg)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."
    return sanitized
