"""Checks run before starting the service or a one-off bridge command."""

from __future__ import annotations

import errno
import shutil
import socket
from pathlib import Path
from urllib.parse import urlparse

from taxbridge.config.schema import BridgeConfig


def is_port_in_use(host: str, port: int) -> bool:
    """True when another process already holds host:port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                return True
            raise
    return False


def bridge_target_problems(bridge: BridgeConfig) -> list[str]:
    """Describe why the configured MCP server is unlikely to start; empty when it looks usable."""
    problems: list[str] = []
    if bridge.mode == "http":
        parsed = urlparse(bridge.url or "")
        if not bridge.url:
            problems.append("No MCP endpoint URL configured (bridge.url or MCP_URL)")
        elif parsed.scheme not in ("http", "https") or not parsed.netloc:
            problems.append(f"MCP endpoint URL is not an http(s) URL: {bridge.url}")
        return problems

    if not bridge.server_path:
        problems.append("No MCP server path configured (bridge.serverPath or MCP_PATH)")
    else:
        entry = Path(bridge.server_path).expanduser()
        if bridge.cwd and not entry.is_absolute():
            entry = Path(bridge.cwd).expanduser() / entry
        if not entry.exists():
            problems.append(f"MCP server entry point not found: {entry}")
    if bridge.command and shutil.which(bridge.command) is None:
        problems.append(f"Command not found on PATH: {bridge.command}")
    return problems
