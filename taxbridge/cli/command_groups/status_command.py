"""Status command: show where the bridge will connect."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from taxbridge import __logo__


def status_command(console: Console) -> None:
    """Show taxbridge status."""
    from taxbridge.cli.shared.preflight_utils import bridge_target_problems
    from taxbridge.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()
    bridge = config.bridge

    console.print(f"{__logo__} taxbridge Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Mode: {bridge.mode}")
    if bridge.mode == "stdio":
        command = bridge.build_command()
        console.print(f"Server: {escape(' '.join(command)) if command else '[dim]not set[/dim]'}")
    else:
        console.print(f"Endpoint: {escape(bridge.url) if bridge.url else '[dim]not set[/dim]'}")
    console.print(f"Timeout: {bridge.timeout_seconds}s")
    console.print(f"HTTP service: {config.server.host}:{config.server.port}")

    problems = bridge_target_problems(bridge)
    for problem in problems:
        console.print(f"[red]✗[/red] {escape(problem)}")
    if not problems:
        console.print("[green]✓[/green] MCP server target looks usable")
