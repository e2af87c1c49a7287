"""Utility functions for taxbridge."""

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

__all__ = [
    "BridgeClosed",
    "ErrorCategory",
    "InitializationError",
    "NotReadyError",
    "RemoteError",
    "RequestTimeout",
    "TaxBridgeError",
    "TransportError",
    "classify_exception",
    "format_tool_error",
    "sanitize_error_message",
]
