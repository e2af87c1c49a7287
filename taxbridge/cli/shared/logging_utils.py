"""Loguru sinks for CLI commands.

Each long-running command gets a rotating file under ``~/.taxbridge/logs``.
Lines the MCP server writes to stderr are split into their own
``mcp-server.log`` so the bridge's log stays readable.
"""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from taxbridge.bridge.supervisor import CHILD_LOG_PREFIX
from taxbridge.config.loader import get_data_dir

_FILE_SINKS: dict[str, int] = {}
_console_sink: int | None = None


def is_child_output(record) -> bool:
    return record["message"].startswith(CHILD_LOG_PREFIX)


def _add_file_sink(path: Path, level: str, log_filter) -> int:
    return logger.add(
        str(path),
        level=level,
        filter=log_filter,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Add (once per name) a rotating sink for the command and one for child stderr."""
    log_dir = get_data_dir() / "logs"
    log_path = log_dir / f"{name}.log"
    if name in _FILE_SINKS:
        return log_path
    log_dir.mkdir(parents=True, exist_ok=True)
    _FILE_SINKS[name] = _add_file_sink(log_path, level, lambda record: not is_child_output(record))
    if "mcp-server" not in _FILE_SINKS:
        # Child stderr is logged at DEBUG, so this sink ignores the command's level.
        _FILE_SINKS["mcp-server"] = _add_file_sink(log_dir / "mcp-server.log", "DEBUG", is_child_output)
    return log_path


def configure_console_logging(verbose: bool = False) -> None:
    """Swap the stderr sink; WARNING and above unless verbose."""
    global _console_sink
    if _console_sink is None:
        logger.remove()
    else:
        logger.remove(_console_sink)
    _console_sink = logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")
