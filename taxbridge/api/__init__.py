"""HTTP API exposing the MCP bridge."""
