"""Configuration schema using Pydantic.

Persisted to ~/.taxbridge/config.json (camelCase keys on disk).
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from taxbridge import __version__


class BridgeConfig(BaseModel):
    """MCP tool server connection (stdio child process or HTTP endpoint)."""
    mode: Literal["stdio", "http"] = "stdio"
    command: str = "node"  # Stdio: interpreter used to run server_path
    server_path: str = ""  # Stdio: path to the MCP server entry point (MCP_PATH)
    args: list[str] = Field(default_factory=list)  # Stdio: extra arguments after server_path
    env: dict[str, str] = Field(default_factory=dict)  # Stdio: extra env vars for the child
    cwd: str | None = None
    url: str = ""  # HTTP: JSON-RPC POST endpoint (MCP_URL)
    timeout_seconds: float = Field(default=30.0, gt=0)
    terminate_grace_seconds: float = Field(default=5.0, ge=0)
    stream_limit_bytes: int = Field(default=4 * 1024 * 1024, gt=0)
    # Handshake payload; the paired server defines what it accepts.
    protocol_version: str = "2024-11-05"
    client_name: str = "taxbridge"
    client_version: str = __version__
    capabilities: dict[str, Any] = Field(default_factory=dict)

    def build_command(self, server_path: str | None = None) -> list[str]:
        """Command line for the stdio child; empty when no server path is known."""
        path = (server_path or self.server_path or "").strip()
        if not path:
            return []
        command = (self.command or "").strip()
        head = [command, path] if command else [path]
        return head + list(self.args)


class ServerConfig(BaseModel):
    """HTTP service that exposes the bridge."""
    host: str = "127.0.0.1"
    port: int = 3000
    allowed_origins: list[str] = Field(default_factory=lambda: ["*"])


class Config(BaseSettings):
    """Root configuration for taxbridge."""
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    model_config = ConfigDict(
        env_prefix="TAXBRIDGE_",
        env_nested_delimiter="__"
    )
