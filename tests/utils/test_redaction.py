"""Tests for telemetry and error-message redaction."""

from relaychat.utils.redaction import (
    redact_for_logging,
    redact_tool_input,
    sanitize_error_message,
)


class TestRedactForLogging:
    """Tests for redact_for_logging."""

    def test_masks_sensitive_keys(self):
        result = redact_for_logging({"access_token": "abc", "Client_Secret": "s", "name": "ok"})
        assert result == {
            "access_token": "***REDACTED***",
            "Client_Secret": "***REDACTED***",
            "name": "ok",
        }

    def test_walks_nested_structures(self):
        result = redact_for_logging({"items": [{"password": "p", "id": 1}], "meta": {"api_key": "k"}})
        assert result["items"][0] == {"password": "***REDACTED***", "id": 1}
        assert result["meta"]["api_key"] == "***REDACTED***"

    def test_container_keys_are_masked_whole(self):
        assert redact_for_logging({"headers": {"accept": "json"}})["headers"] == "***REDACTED***"

    def test_does_not_mutate_input(self):
        original = {"token": "t"}
        redact_for_logging(original)
        assert original == {"token": "t"}


class TestRedactToolInput:
    """Tests for redact_tool_input."""

    def test_truncates_long_text(self):
        result = redact_tool_input({"body": "x" * 500, "subject": "Hi"})
        assert result["subject"] == "Hi"
        assert result["body"].startswith("x" * 200)
        assert result["body"].endswith("(500 chars)")

    def test_non_dict_input(self):
        assert redact_tool_input("short") == "short"


class TestSanitizeErrorMessage:
    """Tests for sanitize_error_message."""

    def test_none_passes_through(self):
        assert sanitize_error_message(None) is None

    def test_masks_bearer_header(self):
        result = sanitize_error_message("failed: Authorization: Bearer abc.def.ghi")
        assert "abc.def.ghi" not in result

    def test_masks_key_value(self):
        result = sanitize_error_message("request failed api_key=ck_live_123 status=500")
        assert "ck_live_123" not in result
        assert "status=500" in result

    def test_masks_json_fields(self):
        result = sanitize_error_message('{"refresh_token": "rt-1", "scope": "mcp"}')
        assert "rt-1" not in result
        assert '"scope": "mcp"' in result

    def test_truncates(self):
        result = sanitize_error_message("e" * 1000, max_length=50)
        assert len(result) == 50
        assert result.endswith("...")
