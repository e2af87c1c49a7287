"""Helpers for tool HTTP endpoint payloads."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from loguru import logger

from taxbridge.api.http.error_helpers import bridge_error_status, unknown_error_detail
from taxbridge.bridge import Bridge
from taxbridge.utils.exceptions import TaxBridgeError, format_tool_error


def health_response(*, bridge: Bridge | None) -> dict[str, Any]:
    """Build payload for GET /health."""
    return {
        "status": "ok",
        "bridge": bridge.status() if bridge is not None else None,
    }


async def list_tools_response(*, bridge: Bridge | None) -> dict[str, Any]:
    """Build payload for GET /api/tools. Tool discovery is advisory, so failures yield []."""
    if bridge is None:
        return {"tools": []}
    tools = await bridge.list_tools()
    return {"tools": [tool.to_dict() for tool in tools]}


async def call_tool_response(
    *,
    bridge: Bridge | None,
    tool_name: str,
    arguments: Any,
) -> tuple[int, dict[str, Any]]:
    """Run POST /api/tools/{tool_name}; returns (status_code, payload)."""
    name = (tool_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Tool name required")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise HTTPException(status_code=400, detail="Tool arguments must be a JSON object")
    if bridge is None:
        return 503, {"success": False, "error": "MCP bridge is not configured"}
    try:
        result = await bridge.call_tool(name, arguments)
    except TaxBridgeError as exc:
        return bridge_error_status(exc), {
            "success": False,
            "error": format_tool_error(name, exc),
            "code": exc.code,
        }
    except Exception as exc:
        logger.exception("Unexpected failure in tool '{}'", name)
        return 500, {"success": False, "error": unknown_error_detail(exc)}
    return 200, {"success": True, "result": result}
