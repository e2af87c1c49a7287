"""Pytest hooks and fixtures."""

import sys
from pathlib import Path

import pytest

from taxbridge.config.schema import BridgeConfig

STUB_SERVER = Path(__file__).parent / "fixtures" / "stub_server.py"


def stub_bridge_config(
    behavior: str = "echo",
    timeout_seconds: float = 5.0,
    stream_limit_bytes: int = 4 * 1024 * 1024,
) -> BridgeConfig:
    """Bridge config that runs the stub JSON-RPC server with the current interpreter."""
    return BridgeConfig(
        mode="stdio",
        command=sys.executable,
        server_path=str(STUB_SERVER),
        args=[behavior],
        timeout_seconds=timeout_seconds,
        terminate_grace_seconds=2.0,
        stream_limit_bytes=stream_limit_bytes,
    )


@pytest.fixture
def stub_config():
    return stub_bridge_config
