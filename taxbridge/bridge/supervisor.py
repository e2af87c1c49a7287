"""Child process lifecycle for the stdio transport."""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from taxbridge.utils.exceptions import InitializationError, TransportError

DEFAULT_STREAM_LIMIT = 4 * 1024 * 1024
CHILD_LOG_PREFIX = "[mcp-server]"


class ProcessSupervisor:
    """Spawn the MCP server, pump its streams and report unexpected exits.

    stdout lines go to ``on_line``; stderr lines are logged only. When the
    process exits without ``terminate()`` having been called, ``on_exit`` gets
    the return code.
    """

    def __init__(
        self,
        command: list[str],
        *,
        on_line: Callable[[str], None],
        on_exit: Callable[[int | None], None],
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        stream_limit: int = DEFAULT_STREAM_LIMIT,
    ):
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.env = env or {}
        self.cwd = cwd
        self.stream_limit = stream_limit
        self._on_line = on_line
        self._on_exit = on_exit
        self._proc: asyncio.subprocess.Process | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._terminating = False

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc else None

    @property
    def is_running(self) -> bool:
        return self._proc is not None and self._proc.returncode is None

    async def start(self) -> None:
        if self.is_running:
            return
        env = os.environ.copy()
        env.update(self.env)
        cwd = str(Path(self.cwd).expanduser()) if self.cwd else None
        logger.info("Starting MCP server: {}", " ".join(self.command))
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=cwd,
                limit=self.stream_limit,
            )
        except FileNotFoundError as exc:
            raise InitializationError(f"MCP server command not found: {self.command[0]}") from exc
        except PermissionError as exc:
            raise InitializationError(f"MCP server command not executable: {self.command[0]}") from exc
        except OSError as exc:
            raise InitializationError(f"Failed to start MCP server: {exc}") from exc
        self._terminating = False
        self._tasks = [
            asyncio.create_task(self._stdout_loop(), name="mcp-stdout"),
            asyncio.create_task(self._stderr_loop(), name="mcp-stderr"),
            asyncio.create_task(self._wait_loop(), name="mcp-wait"),
        ]
        logger.debug("MCP server started with pid {}", self._proc.pid)

    async def _stdout_loop(self) -> None:
        proc = self._proc
        if not proc or not proc.stdout:
            return
        while True:
            try:
                raw = await proc.stdout.readline()
            except ValueError:
                logger.warning("MCP server sent a line longer than {} bytes; dropping it", self.stream_limit)
                continue
            if not raw:
                return
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                self._on_line(text)

    async def _stderr_loop(self) -> None:
        proc = self._proc
        if not proc or not proc.stderr:
            return
        while True:
            try:
                raw = await proc.stderr.readline()
            except ValueError:
                logger.warning("MCP server wrote a stderr line longer than {} bytes; dropping it", self.stream_limit)
                continue
            if not raw:
                return
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                logger.debug("{} {}", CHILD_LOG_PREFIX, text)

    async def _wait_loop(self) -> None:
        proc = self._proc
        if not proc:
            return
        returncode = await proc.wait()
        if self._terminating:
            return
        logger.warning("MCP server exited unexpectedly with code {}", returncode)
        self._on_exit(returncode)

    async def write_line(self, text: str) -> None:
        proc = self._proc
        if proc is None or proc.returncode is not None or proc.stdin is None or self._terminating:
            raise TransportError("MCP server process is not running")
        try:
            proc.stdin.write(text.encode("utf-8") + b"\n")
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise TransportError(f"MCP server stdin closed: {exc}") from exc

    async def terminate(self, grace_seconds: float = 5.0) -> None:
        """Stop the process; safe to call repeatedly or after it already exited."""
        self._terminating = True
        proc = self._proc
        if proc is not None:
            if proc.stdin is not None and not proc.stdin.is_closing():
                proc.stdin.close()
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.terminate()
                try:
                    await asyncio.wait_for(proc.wait(), timeout=grace_seconds)
                except asyncio.TimeoutError:
                    logger.warning("MCP server did not exit within {}s, killing it", grace_seconds)
                    with contextlib.suppress(ProcessLookupError):
                        proc.kill()
                    await proc.wait()
            logger.info("MCP server stopped (code {})", proc.returncode)
        current = asyncio.current_task()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if task is not current and not task.done():
                task.cancel()
        others = [task for task in tasks if task is not current]
        # Pump tasks that already failed must not break shutdown.
        for result in await asyncio.gather(*others, return_exceptions=True):
            if isinstance(result, Exception):
                logger.warning("MCP server stream task failed: {}", result)
