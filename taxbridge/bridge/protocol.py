"""JSON-RPC 2.0 frame models exchanged with the MCP tool server."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

JSONRPC_VERSION = "2.0"


class BridgeMode(str, Enum):
    """Transport variant selected once per bridge."""

    STDIO = "stdio"
    HTTP = "http"


class BridgeState(str, Enum):
    """Bridge lifecycle, shared by its transport and supervised process."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


@dataclass(slots=True)
class RpcError:
    """Error object of a JSON-RPC response; data is passed through verbatim."""

    code: int
    message: str
    data: Any = None


@dataclass(slots=True)
class RpcRequest:
    """JSON-RPC request frame."""

    id: int
    method: str
    params: Any = None


@dataclass(slots=True)
class RpcResponse:
    """JSON-RPC response frame. Exactly one of result/error is meaningful."""

    id: int
    result: Any = None
    error: RpcError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class ToolDescriptor:
    """A tool advertised by the server through tools/list."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "ToolDescriptor":
        schema = row.get("inputSchema", row.get("input_schema"))
        return cls(
            name=str(row.get("name") or ""),
            description=str(row.get("description") or ""),
            input_schema=schema if isinstance(schema, dict) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}
