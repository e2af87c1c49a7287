"""CLI commands for taxbridge.

Top-level commands (serve, status, init) plus the tools command group.
"""

import typer
from rich.console import Console
from rich.markup import escape

from taxbridge import __logo__, __version__
from taxbridge.cli.command_groups.tools_command import register_tools_commands
from taxbridge.cli.shared.logging_utils import configure_console_logging, ensure_rotating_log_file
from taxbridge.cli.shared.preflight_utils import bridge_target_problems, is_port_in_use

app = typer.Typer(
    name="taxbridge",
    help=f"{__logo__} taxbridge - MCP tool bridge for the tax advisor service",
    no_args_is_help=True,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} taxbridge v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", callback=_version_callback, is_eager=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """taxbridge - MCP tool bridge for the tax advisor service."""
    configure_console_logging(verbose)


@app.command()
def init():
    """Write a default configuration file."""
    from taxbridge.config.loader import get_config_path, save_config
    from taxbridge.config.schema import Config

    config_path = get_config_path()
    if config_path.exists() and not typer.confirm(f"Config already exists at {config_path}. Overwrite?"):
        raise typer.Exit()
    save_config(Config())
    console.print(f"[green]✓[/green] Created config at {config_path}")


@app.command()
def serve(
    host: str = typer.Option("", "--host", "-h", help="Bind host (default from config)"),
    port: int = typer.Option(0, "--port", "-p", help="Port (default from config / PORT)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start the HTTP service (health, tool discovery and direct tool calls)."""
    from taxbridge.api.server import run_server
    from taxbridge.config.access import get_config

    config = get_config()
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    if is_port_in_use(bind_host, bind_port):
        console.print(
            f"[red]Port {bind_port} is already in use.[/red] "
            f"Close the process using it or pass [cyan]--port[/cyan] (current: {bind_host}:{bind_port})."
        )
        raise typer.Exit(1)

    for problem in bridge_target_problems(config.bridge):
        console.print(f"[yellow]Warning:[/yellow] {escape(problem)}; the service will start without MCP tools.")

    if verbose:
        configure_console_logging(True)
    log_path = ensure_rotating_log_file("serve", level="DEBUG" if verbose else "INFO")
    console.print(f"{__logo__} Starting taxbridge on {bind_host}:{bind_port} ({config.bridge.mode} bridge)...")
    console.print(f"[dim]Logs: {log_path}[/dim]")
    run_server(config, host=bind_host, port=bind_port)


@app.command()
def status():
    """Show resolved configuration."""
    from taxbridge.cli.command_groups.status_command import status_command

    status_command(console)


register_tools_commands(app=app, console=console)


if __name__ == "__main__":
    app()
