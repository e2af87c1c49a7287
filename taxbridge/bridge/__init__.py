"""JSON-RPC bridge to the MCP tool server (stdio child process or HTTP endpoint)."""

from .client import Bridge
from .correlator import Correlator, PendingEntry
from .protocol import BridgeMode, BridgeState, RpcError, RpcRequest, RpcResponse, ToolDescriptor
from .supervisor import ProcessSupervisor
from .transport import HttpTransport, StdioTransport, Transport, create_transport

__all__ = [
    "Bridge",
    "BridgeMode",
    "BridgeState",
    "Correlator",
    "HttpTransport",
    "PendingEntry",
    "ProcessSupervisor",
    "RpcError",
    "RpcRequest",
    "RpcResponse",
    "StdioTransport",
    "ToolDescriptor",
    "Transport",
    "create_transport",
]
