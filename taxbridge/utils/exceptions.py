"""
Error types raised by the bridge, plus helpers that turn them into safe,
classified messages for HTTP responses and CLI output.

Every failure a caller can see from `Bridge` is a `TaxBridgeError` subclass
carrying a stable `code` (TRANSPORT_ERROR, TIMEOUT, REMOTE_ERROR, ...).
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    TIMEOUT = "timeout"


class TaxBridgeError(Exception):
    """Base exception for all taxbridge errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class TransportError(TaxBridgeError):
    """Channel unavailable, unreachable, or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, code="TRANSPORT_ERROR", category=ErrorCategory.RETRYABLE, details=details)
        self.status_code = status_code


class InitializationError(TaxBridgeError):
    """Child process spawn or protocol handshake failed."""

    def __init__(self, message: str):
        super().__init__(message, code="INITIALIZATION_ERROR", category=ErrorCategory.FATAL)


class NotReadyError(TaxBridgeError):
    """A call was issued while the bridge was not in the ready state."""

    def __init__(self, state: str):
        super().__init__(
            f"Bridge is not ready (state: {state})",
            code="NOT_READY",
            category=ErrorCategory.FATAL,
            details={"state": state},
        )
        self.state = state


class RequestTimeout(TaxBridgeError):
    """No response arrived for a request within the deadline."""

    def __init__(self, request_id: int, method: str, elapsed_seconds: float):
        super().__init__(
            f"Request {request_id} ({method or 'unknown'}) timed out after {elapsed_seconds:.2f}s",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"request_id": request_id, "method": method, "elapsed_seconds": elapsed_seconds},
        )
        self.request_id = request_id
        self.method = method
        self.elapsed_seconds = elapsed_seconds


class RemoteError(TaxBridgeError):
    """The tool server answered with an explicit JSON-RPC error object."""

    def __init__(self, rpc_code: int, message: str, data: Any = None, request_id: int | None = None):
        super().__init__(
            message,
            code="REMOTE_ERROR",
            category=ErrorCategory.RECOVERABLE,
            details={"rpc_code": rpc_code, "data": data, "request_id": request_id},
        )
        self.rpc_code = rpc_code
        self.data = data
        self.request_id = request_id

    def __str__(self) -> str:
        return f"[{self.code} {self.rpc_code}] {self.message}"


class BridgeClosed(TaxBridgeError):
    """Issued to every pending request on shutdown or unexpected process exit."""

    def __init__(self, reason: str = "bridge closed"):
        super().__init__(reason, code="BRIDGE_CLOSED", category=ErrorCategory.FATAL, details={"reason": reason})
        self.reason = reason


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"sk-[a-zA-Z0-9\-_]{20,}"),
    re.compile(r"[a-zA-Z0-9]{32,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory, bool]:
    """Return (error_code, category, should_retry); timeouts and transport failures are retryable."""
    if isinstance(exc, TaxBridgeError):
        return exc.code, exc.category, exc.category in (ErrorCategory.RETRYABLE, ErrorCategory.TIMEOUT)

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


def format_tool_error(tool_name: str, exc: Exception, include_details: bool = False) -> str:
    """Format an exception as a tool error response string."""
    code, category, _ = classify_exception(exc)

    if isinstance(exc, TaxBridgeError):
        message = sanitize_error_message(exc.message)
    else:
        message = sanitize_error_message(str(exc))

    if include_details:
        return f"Error [{code}] ({category.value}) in {tool_name}: {message}"
    return f"Error: {message}"
