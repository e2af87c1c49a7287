"""Serialization helpers for bridge RPC frames."""

from __future__ import annotations

import json
from typing import Any

from taxbridge.utils.exceptions import RemoteError

from .protocol import JSONRPC_VERSION, RpcError, RpcRequest, RpcResponse, ToolDescriptor


class FrameError(ValueError):
    """Raised when a payload is not a well-formed JSON-RPC response."""


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def encode_request_line(request: RpcRequest) -> str:
    """Encode a request frame into one line of JSON."""
    payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": request.id, "method": request.method}
    if request.params is not None:
        payload["params"] = request.params
    return json.dumps(payload, ensure_ascii=False)


def encode_notification_line(method: str, params: Any = None) -> str:
    """Encode a notification (no id, no response expected) into one line of JSON."""
    payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload, ensure_ascii=False)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def decode_rpc_error(error: Any) -> RpcError:
    """Validate a JSON-RPC error object."""
    if not isinstance(error, dict):
        raise FrameError("error must be an object")
    code = error.get("code")
    message = error.get("message")
    if not _is_int(code):
        raise FrameError("error.code must be an integer")
    if not isinstance(message, str):
        raise FrameError("error.message must be a string")
    return RpcError(code=code, message=message, data=error.get("data"))


def decode_response_payload(payload: Any) -> RpcResponse:
    """Decode a parsed JSON value into an RpcResponse, or raise FrameError."""
    if not isinstance(payload, dict):
        raise FrameError("response must be a JSON object")
    req_id = payload.get("id")
    if not _is_int(req_id) or req_id < 0:
        raise FrameError(f"response id must be a non-negative integer, got {req_id!r}")
    has_result = "result" in payload
    has_error = "error" in payload and payload["error"] is not None
    if has_result == has_error:
        raise FrameError("response must carry exactly one of result or error")
    if has_error:
        return RpcResponse(id=req_id, error=decode_rpc_error(payload["error"]))
    return RpcResponse(id=req_id, result=payload["result"])


def decode_response_line(line: str) -> RpcResponse:
    """Parse one line of text into an RpcResponse."""
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise FrameError(f"invalid JSON: {exc.msg}") from exc
    return decode_response_payload(payload)


def to_remote_error(response: RpcResponse) -> RemoteError:
    """Convert an error response to RemoteError."""
    err = response.error or RpcError(code=-32603, message="rpc failed")
    return RemoteError(err.code, err.message, err.data, request_id=response.id)


def decode_tool_list(result: Any) -> list[ToolDescriptor]:
    """Extract tool descriptors from a tools/list result."""
    rows = safe_dict(result).get("tools")
    if not isinstance(rows, list):
        return []
    return [ToolDescriptor.from_dict(row) for row in rows if isinstance(row, dict) and row.get("name")]
