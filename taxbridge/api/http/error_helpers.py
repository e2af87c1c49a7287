"""Shared helpers for consistent HTTP error detail formatting."""

from __future__ import annotations

from taxbridge.utils.exceptions import (
    BridgeClosed,
    NotReadyError,
    RequestTimeout,
    TransportError,
    sanitize_error_message,
)


def unknown_error_detail(exc: Exception | None) -> str:
    """Format generic unknown-error detail consistently across endpoints."""
    return sanitize_error_message(str(exc)) if exc else "Unknown error"


def bridge_error_status(exc: Exception) -> int:
    """Map a bridge failure to the HTTP status returned to API clients."""
    if isinstance(exc, (NotReadyError, BridgeClosed)):
        return 503
    if isinstance(exc, RequestTimeout):
        return 504
    if isinstance(exc, TransportError):
        return 502
    return 500
