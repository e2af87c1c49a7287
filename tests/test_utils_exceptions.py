"""Tests for taxbridge.utils.exceptions module."""

from __future__ import annotations

import asyncio
import json

from taxbridge.utils.exceptions import (
    BridgeClosed,
    ErrorCategory,
    InitializationError,
    NotReadyError,
    RemoteError,
    RequestTimeout,
    TaxBridgeError,
    TransportError,
    classify_exception,
    format_tool_error,
    sanitize_error_message,
)


class TestExceptionClasses:
    """Test bridge exception classes."""

    def test_taxbridge_error_to_dict(self) -> None:
        exc = TaxBridgeError("test message", code="TEST_CODE")
        assert exc.to_dict() == {
            "error": "TEST_CODE",
            "message": "test message",
            "category": ErrorCategory.FATAL.value,
            "details": {},
        }
        assert str(exc) == "[TEST_CODE] test message"

    def test_transport_error_with_status(self) -> None:
        exc = TransportError("MCP endpoint returned HTTP 502", status_code=502)
        assert exc.code == "TRANSPORT_ERROR"
        assert exc.category == ErrorCategory.RETRYABLE
        assert exc.status_code == 502
        assert exc.details == {"status_code": 502}

    def test_transport_error_without_status(self) -> None:
        exc = TransportError("stdio transport is closed")
        assert exc.status_code is None
        assert exc.details == {}

    def test_initialization_error(self) -> None:
        exc = InitializationError("spawn failed")
        assert exc.code == "INITIALIZATION_ERROR"
        assert exc.category == ErrorCategory.FATAL

    def test_not_ready_error(self) -> None:
        exc = NotReadyError("uninitialized")
        assert exc.code == "NOT_READY"
        assert exc.state == "uninitialized"
        assert "uninitialized" in exc.message

    def test_request_timeout(self) -> None:
        exc = RequestTimeout(12, "tools/call", 30.0)
        assert exc.code == "TIMEOUT"
        assert exc.category == ErrorCategory.TIMEOUT
        assert exc.request_id == 12
        assert "30.00s" in exc.message
        assert exc.details["method"] == "tools/call"

    def test_remote_error(self) -> None:
        exc = RemoteError(-32602, "Invalid params", data={"field": "income"}, request_id=3)
        assert exc.code == "REMOTE_ERROR"
        assert exc.category == ErrorCategory.RECOVERABLE
        assert exc.rpc_code == -32602
        assert exc.data == {"field": "income"}
        assert str(exc) == "[REMOTE_ERROR -32602] Invalid params"

    def test_bridge_closed(self) -> None:
        exc = BridgeClosed("MCP server exited with code 1")
        assert exc.code == "BRIDGE_CLOSED"
        assert exc.reason == "MCP server exited with code 1"
        assert BridgeClosed().reason == "bridge closed"


class TestSanitizeErrorMessage:
    """Test sanitize_error_message function."""

    def test_no_sensitive_info(self) -> None:
        assert sanitize_error_message("Operation failed") == "Operation failed"

    def test_sanitize_api_key(self) -> None:
        result = sanitize_error_message("API key: sk-1234567890abcdefghijklmnop")
        assert "sk-1234567890" not in result
        assert "[REDACTED]" in result

    def test_sanitize_bearer_token(self) -> None:
        result = sanitize_error_message("Authorization failed for Bearer abc.def-123")
        assert "abc.def-123" not in result

    def test_sanitize_password(self) -> None:
        result = sanitize_error_message("Password: mySecret123")
        assert "mySecret123" not in result
        assert "[REDACTED]" in result

    def test_sanitize_long_string(self) -> None:
        result = sanitize_error_message("Error: abcdefghijklmnopqrstuvwxyz1234567890abcdef")
        assert "abcdefghijklmnopqrstuvwxyz" not in result

    def test_sanitize_with_custom_replacement(self) -> None:
        result = sanitize_error_message("API key: sk-abcdefghijklmnopqrstuvwxyz1234567890", replacement="[HIDDEN]")
        assert "[HIDDEN]" in result


class TestClassifyException:
    """Test classify_exception function."""

    def test_classify_bridge_errors(self) -> None:
        assert classify_exception(TransportError("down")) == ("TRANSPORT_ERROR", ErrorCategory.RETRYABLE, True)
        assert classify_exception(RequestTimeout(1, "x", 1.0)) == ("TIMEOUT", ErrorCategory.TIMEOUT, True)
        assert classify_exception(RemoteError(-1, "no")) == ("REMOTE_ERROR", ErrorCategory.RECOVERABLE, False)
        assert classify_exception(BridgeClosed()) == ("BRIDGE_CLOSED", ErrorCategory.FATAL, False)

    def test_classify_asyncio_timeout(self) -> None:
        assert classify_exception(asyncio.TimeoutError()) == ("TIMEOUT", ErrorCategory.TIMEOUT, True)

    def test_classify_connection_error(self) -> None:
        code, category, should_retry = classify_exception(ConnectionError("Connection refused"))
        assert code == "CONNECTION_ERROR"
        assert category == ErrorCategory.RETRYABLE
        assert should_retry is True

    def test_classify_json_decode_error(self) -> None:
        code, category, should_retry = classify_exception(json.JSONDecodeError("Invalid JSON", "", 0))
        assert code == "JSON_PARSE_ERROR"
        assert category == ErrorCategory.VALIDATION
        assert should_retry is False

    def test_classify_value_error(self) -> None:
        code, category, _ = classify_exception(ValueError("Invalid value"))
        assert code == "INVALID_VALUE"
        assert category == ErrorCategory.VALIDATION

    def test_classify_unknown(self) -> None:
        assert classify_exception(RuntimeError("x")) == ("INTERNAL_ERROR", ErrorCategory.FATAL, False)


class TestFormatToolError:
    """Test format_tool_error function."""

    def test_basic(self) -> None:
        assert format_tool_error("calculate_tax_estimate", RemoteError(-32602, "income is required")) == (
            "Error: income is required"
        )

    def test_with_details(self) -> None:
        result = format_tool_error("get_upcoming_dues", RequestTimeout(5, "tools/call", 30.0), include_details=True)
        assert result.startswith("Error [TIMEOUT] (timeout) in get_upcoming_dues:")

    def test_plain_exception_is_sanitized(self) -> None:
        result = format_tool_error("x", RuntimeError("token=abc123"))
        assert "abc123" not in result
