"""Build and drive a short-lived Bridge for one-off CLI commands."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from taxbridge.bridge import Bridge
from taxbridge.config.schema import BridgeConfig, Config

T = TypeVar("T")


def resolve_bridge_config(
    config: Config,
    *,
    mode: str | None = None,
    path: str | None = None,
    url: str | None = None,
    timeout: float | None = None,
) -> BridgeConfig:
    """Apply command line overrides on top of the loaded bridge config."""
    updates: dict[str, Any] = {}
    if mode:
        updates["mode"] = mode.strip().lower()
    if path:
        updates["server_path"] = path
    if url:
        updates["url"] = url
    if timeout:
        updates["timeout_seconds"] = timeout
    merged = config.bridge.model_dump()
    merged.update(updates)
    return BridgeConfig.model_validate(merged)


def run_with_bridge(bridge_config: BridgeConfig, fn: Callable[[Bridge], Awaitable[T]]) -> T:
    """Initialize a bridge, run fn against it and always shut it down."""

    async def _main() -> T:
        async with Bridge(bridge_config) as bridge:
            return await fn(bridge)

    return asyncio.run(_main())
