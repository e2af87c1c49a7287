"""taxbridge - JSON-RPC bridge between a tax advisor service and its MCP tool server."""

__version__ = "0.1.0"
__logo__ = "🧾"
