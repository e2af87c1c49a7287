"""Tools command group: discover and invoke MCP server tools directly."""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from taxbridge.bridge import Bridge, ToolDescriptor
from taxbridge.cli.shared.bridge_utils import resolve_bridge_config, run_with_bridge
from taxbridge.config.access import get_config
from taxbridge.utils.exceptions import TaxBridgeError


def parse_tool_arguments(raw: str) -> dict[str, Any]:
    """Parse --args JSON into a dict; raises typer.BadParameter on bad input."""
    text = (raw or "").strip()
    if not text:
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"--args is not valid JSON: {exc.msg}") from exc
    if not isinstance(value, dict):
        raise typer.BadParameter("--args must be a JSON object")
    return value


def tool_table_row(tool: ToolDescriptor) -> tuple[str, str, str]:
    props = tool.input_schema.get("properties")
    params = ", ".join(sorted(props)) if isinstance(props, dict) else ""
    return tool.name, tool.description, params


def register_tools_commands(app: typer.Typer, console: Console) -> None:
    """Register the tools command group."""
    tools_app = typer.Typer(help="Discover and call MCP server tools")
    app.add_typer(tools_app, name="tools")

    @tools_app.command("list")
    def tools_list(
        mode: str = typer.Option("", "--mode", help="Transport: stdio or http"),
        path: str = typer.Option("", "--path", help="MCP server entry point (stdio)"),
        url: str = typer.Option("", "--url", help="MCP endpoint URL (http)"),
        timeout: float = typer.Option(0.0, "--timeout", help="Per-request timeout in seconds"),
    ) -> None:
        bridge_config = resolve_bridge_config(get_config(), mode=mode, path=path, url=url, timeout=timeout)

        async def _list(bridge: Bridge) -> list[ToolDescriptor]:
            return await bridge.list_tools()

        try:
            tools = run_with_bridge(bridge_config, _list)
        except TaxBridgeError as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(1)
        table = Table(title=f"Tools ({len(tools)})")
        table.add_column("Name", style="cyan")
        table.add_column("Description")
        table.add_column("Parameters")
        for tool in tools:
            table.add_row(*tool_table_row(tool))
        console.print(table)

    @tools_app.command("call")
    def tools_call(
        name: str = typer.Argument(..., help="Tool name"),
        args: str = typer.Option("{}", "--args", "-a", help="Tool arguments as a JSON object"),
        mode: str = typer.Option("", "--mode", help="Transport: stdio or http"),
        path: str = typer.Option("", "--path", help="MCP server entry point (stdio)"),
        url: str = typer.Option("", "--url", help="MCP endpoint URL (http)"),
        timeout: float = typer.Option(0.0, "--timeout", help="Per-request timeout in seconds"),
    ) -> None:
        arguments = parse_tool_arguments(args)
        bridge_config = resolve_bridge_config(get_config(), mode=mode, path=path, url=url, timeout=timeout)

        async def _call(bridge: Bridge) -> Any:
            return await bridge.call_tool(name, arguments)

        try:
            result = run_with_bridge(bridge_config, _call)
        except TaxBridgeError as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(1)
        console.print_json(json.dumps(result, ensure_ascii=False))
