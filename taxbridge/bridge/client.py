"""Bridge: request/response API over the MCP tool server's JSON-RPC channel."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from taxbridge.config.schema import BridgeConfig
from taxbridge.utils.exceptions import (
    BridgeClosed,
    InitializationError,
    NotReadyError,
    TaxBridgeError,
    sanitize_error_message,
)

from .correlator import Correlator
from .protocol import BridgeMode, BridgeState, RpcRequest, ToolDescriptor
from .serialization import decode_tool_list
from .supervisor import ProcessSupervisor
from .transport import StdioTransport, Transport, create_transport


class Bridge:
    """One explicitly owned connection to an MCP tool server.

    Lifecycle: ``initialize()`` -> ``call()`` / ``call_tool()`` / ``list_tools()``
    -> ``shutdown()``. Also usable as ``async with Bridge(config) as bridge``.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        timeout_seconds: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config or BridgeConfig()
        self.mode = BridgeMode(self.config.mode)
        self._correlator = Correlator(timeout_seconds or self.config.timeout_seconds)
        self._http_client = http_client
        self._transport: Transport | None = None
        self._supervisor: ProcessSupervisor | None = None
        self._state = BridgeState.UNINITIALIZED
        self._cleanup_task: asyncio.Task[None] | None = None
        self._close_reason = ""
        self.server_info: dict[str, Any] = {}

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == BridgeState.READY

    @property
    def pending_count(self) -> int:
        return self._correlator.pending_count

    @property
    def timeout_seconds(self) -> float:
        return self._correlator.timeout_seconds

    def status(self) -> dict[str, Any]:
        """Snapshot for health endpoints and the CLI."""
        return {
            "mode": self.mode.value,
            "state": self._state.value,
            "pending": self.pending_count,
            "pid": self._supervisor.pid if self._supervisor else None,
            "closeReason": self._close_reason or None,
            "serverInfo": self.server_info or None,
        }

    async def __aenter__(self) -> "Bridge":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

    async def initialize(self, endpoint_or_path: str | None = None) -> None:
        """Open the transport and, in stdio mode, perform the protocol handshake."""
        if self._state != BridgeState.UNINITIALIZED:
            raise InitializationError(f"Bridge cannot initialize from state {self._state.value}")
        self._state = BridgeState.INITIALIZING
        try:
            if self.mode == BridgeMode.STDIO:
                await self._start_stdio(endpoint_or_path)
                await self._handshake()
            else:
                self._start_http(endpoint_or_path)
        except Exception as exc:
            reason = sanitize_error_message(str(exc))
            logger.error("Bridge initialization failed: {}", reason)
            await self._teardown(BridgeClosed(f"initialization failed: {reason}"))
            if isinstance(exc, InitializationError):
                raise
            raise InitializationError(f"Bridge initialization failed: {reason}") from exc
        if self._state != BridgeState.INITIALIZING:
            # Shut down or lost the child while the handshake was completing.
            await self._teardown(BridgeClosed(self._close_reason or "bridge closed"))
            raise InitializationError(f"Bridge closed during initialization: {self._close_reason}")
        self._state = BridgeState.READY
        logger.info("Bridge ready ({} mode)", self.mode.value)

    async def _start_stdio(self, server_path: str | None) -> None:
        command = self.config.build_command(server_path)
        if not command:
            raise InitializationError("No MCP server path configured (set bridge.serverPath or MCP_PATH)")
        transport = StdioTransport()
        transport.on_message(self._correlator.dispatch)
        supervisor = ProcessSupervisor(
            command,
            on_line=transport.feed_line,
            on_exit=self._on_process_exit,
            env=self.config.env,
            cwd=self.config.cwd,
            stream_limit=self.config.stream_limit_bytes,
        )
        transport.attach(supervisor)
        self._transport = transport
        self._supervisor = supervisor
        await supervisor.start()

    def _start_http(self, url: str | None) -> None:
        target = (url or self.config.url or "").strip()
        if not target:
            raise InitializationError("No MCP endpoint URL configured (set bridge.url or MCP_URL)")
        transport = create_transport(
            BridgeMode.HTTP,
            url=target,
            timeout=self.timeout_seconds,
            http_client=self._http_client,
        )
        transport.on_message(self._correlator.dispatch)
        self._transport = transport

    async def _handshake(self) -> None:
        result = await self._request(
            "initialize",
            {
                "protocolVersion": self.config.protocol_version,
                "capabilities": dict(self.config.capabilities),
                "clientInfo": {
                    "name": self.config.client_name,
                    "version": self.config.client_version,
                },
            },
        )
        info = result.get("serverInfo") if isinstance(result, dict) else None
        self.server_info = info if isinstance(info, dict) else {}
        if self._transport is None:
            raise NotReadyError(self._state.value)
        await self._transport.notify("notifications/initialized", {})

    async def call(self, method: str, params: Any = None) -> Any:
        """Send one request and wait for its correlated result."""
        if self._state != BridgeState.READY:
            raise NotReadyError(self._state.value)
        return await self._request(method, params)

    async def _request(self, method: str, params: Any) -> Any:
        transport = self._transport
        if transport is None:
            raise NotReadyError(self._state.value)
        request_id = self._correlator.next_id()
        waiter = self._correlator.register(request_id, method)
        # The send runs beside the waiter so the correlator deadline also bounds a slow HTTP POST.
        sender = asyncio.create_task(
            self._send(transport, RpcRequest(id=request_id, method=method, params=params))
        )
        try:
            return await waiter
        finally:
            self._correlator.discard(request_id)
            if not sender.done():
                sender.cancel()

    async def _send(self, transport: Transport, request: RpcRequest) -> None:
        try:
            await transport.send(request)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._correlator.reject(request.id, exc)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Invoke a server tool via tools/call; failures are logged and re-raised."""
        try:
            return await self.call("tools/call", {"name": name, "arguments": arguments or {}})
        except TaxBridgeError as exc:
            logger.error("Tool '{}' failed: {}", name, sanitize_error_message(str(exc)))
            raise

    async def list_tools(self) -> list[ToolDescriptor]:
        """Discover server tools; returns an empty list when discovery fails."""
        try:
            result = await self.call("tools/list", {})
        except TaxBridgeError as exc:
            logger.warning("Tool discovery failed: {}", sanitize_error_message(str(exc)))
            return []
        return decode_tool_list(result)

    async def shutdown(self) -> None:
        """Reject pending calls, close the transport and stop the child. Idempotent."""
        if self._state == BridgeState.CLOSED:
            return
        if self._state == BridgeState.SHUTTING_DOWN:
            if self._cleanup_task is not None:
                await asyncio.shield(self._cleanup_task)
            return
        await self._teardown(BridgeClosed("bridge shut down"))
        logger.info("Bridge closed")

    def _on_process_exit(self, returncode: int | None) -> None:
        if self._state not in (BridgeState.INITIALIZING, BridgeState.READY):
            return
        reason = f"MCP server exited with code {returncode}"
        logger.error("{}; failing pending requests", reason)
        self._close_reason = reason
        self._state = BridgeState.SHUTTING_DOWN
        self._correlator.reject_all(BridgeClosed(reason))
        self._cleanup_task = asyncio.get_running_loop().create_task(self._release_resources())

    async def _teardown(self, error: BridgeClosed) -> None:
        self._state = BridgeState.SHUTTING_DOWN
        if not self._close_reason:
            self._close_reason = error.reason
        self._correlator.reject_all(error)
        task = self._cleanup_task
        if task is not None:
            await asyncio.shield(task)
        else:
            self._cleanup_task = asyncio.get_running_loop().create_task(self._release_resources())
            await asyncio.shield(self._cleanup_task)

    async def _release_resources(self) -> None:
        try:
            if self._transport is not None:
                await self._transport.close()
            if self._supervisor is not None:
                await self._supervisor.terminate(self.config.terminate_grace_seconds)
        finally:
            # Anything registered while resources were being released.
            self._correlator.reject_all(BridgeClosed(self._close_reason or "bridge closed"))
            self._state = BridgeState.CLOSED
