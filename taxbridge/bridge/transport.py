"""
Transport layer between the bridge and the MCP tool server.

Implements:
  - StdioTransport: JSON-RPC lines over a supervised child's stdin/stdout
  - HttpTransport: one JSON-RPC request per HTTP POST
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger

from taxbridge.utils.exceptions import TransportError, sanitize_error_message

from .protocol import BridgeMode, RpcRequest, RpcResponse
from .serialization import (
    FrameError,
    decode_response_line,
    decode_response_payload,
    encode_notification_line,
    encode_request_line,
)
from .supervisor import ProcessSupervisor

MessageHandler = Callable[[RpcResponse], None]


class Transport(ABC):
    """Abstract channel that carries requests out and hands responses to one handler."""

    mode: BridgeMode

    def __init__(self) -> None:
        self._handler: MessageHandler | None = None
        self._closed = False

    def on_message(self, handler: MessageHandler) -> None:
        """Register the consumer of decoded responses."""
        self._handler = handler

    def _deliver(self, response: RpcResponse) -> None:
        if self._handler is None:
            logger.warning("No message handler registered; dropping response {}", response.id)
            return
        self._handler(response)

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    @abstractmethod
    async def send(self, request: RpcRequest) -> None:
        """Send a request; raise TransportError if the channel is not open."""
        ...

    @abstractmethod
    async def notify(self, method: str, params: Any = None) -> None:
        """Send a notification that expects no response."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class StdioTransport(Transport):
    """
    JSON-RPC over the stdin/stdout pipes of a supervised child process.

    One line = one message. Lines that fail to parse are logged and dropped.
    """

    mode = BridgeMode.STDIO

    def __init__(self, supervisor: ProcessSupervisor | None = None):
        super().__init__()
        self.supervisor = supervisor

    def attach(self, supervisor: ProcessSupervisor) -> None:
        self.supervisor = supervisor

    @property
    def is_open(self) -> bool:
        return not self._closed and self.supervisor is not None and self.supervisor.is_running

    def feed_line(self, text: str) -> None:
        """Handle one line read from the child's stdout."""
        text = text.strip()
        if not text:
            return
        try:
            response = decode_response_line(text)
        except FrameError as exc:
            logger.warning("MCP server sent an invalid frame ({}): {}", exc, text[:200])
            return
        self._deliver(response)

    async def _write(self, line: str) -> None:
        if self._closed:
            raise TransportError("stdio transport is closed")
        if self.supervisor is None:
            raise TransportError("stdio transport has no process")
        await self.supervisor.write_line(line)

    async def send(self, request: RpcRequest) -> None:
        await self._write(encode_request_line(request))

    async def notify(self, method: str, params: Any = None) -> None:
        await self._write(encode_notification_line(method, params))

    async def close(self) -> None:
        # The process itself belongs to the supervisor, which the bridge terminates.
        self._closed = True


class HttpTransport(Transport):
    """
    JSON-RPC over HTTP: each send is one POST whose body is the response.

    The response is validated the same way as a stdio line and delivered to
    the registered handler before send returns.
    """

    mode = BridgeMode.HTTP

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
    ):
        super().__init__()
        self.url = (url or "").strip()
        self.timeout = timeout
        self.headers = headers or {}
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    @property
    def is_open(self) -> bool:
        return not self._closed and bool(self.url)

    async def _post(self, body: str) -> httpx.Response:
        if self._closed:
            raise TransportError("http transport is closed")
        if not self.url:
            raise TransportError("http transport has no URL configured")
        client = await self._get_http_client()
        headers = {"Content-Type": "application/json", **self.headers}
        try:
            resp = await client.post(self.url, content=body.encode("utf-8"), headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"MCP endpoint timeout: {self.url}") from exc
        except httpx.RequestError as exc:
            raise TransportError(
                f"MCP endpoint unreachable: {self.url}: {sanitize_error_message(str(exc))}"
            ) from exc
        if not 200 <= resp.status_code < 300:
            raise TransportError(
                f"MCP endpoint returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp

    async def send(self, request: RpcRequest) -> None:
        resp = await self._post(encode_request_line(request))
        try:
            payload = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TransportError(
                f"MCP endpoint returned a non-JSON body for {request.method}",
                status_code=resp.status_code,
            ) from exc
        try:
            response = decode_response_payload(payload)
        except FrameError as exc:
            raise TransportError(
                f"MCP endpoint returned an invalid response: {exc}",
                status_code=resp.status_code,
            ) from exc
        if response.id != request.id:
            raise TransportError(
                f"MCP endpoint answered request {request.id} with id {response.id}",
                status_code=resp.status_code,
            )
        self._deliver(response)

    async def notify(self, method: str, params: Any = None) -> None:
        await self._post(encode_notification_line(method, params))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None


def create_transport(
    mode: BridgeMode,
    *,
    url: str = "",
    timeout: float = 30.0,
    http_client: httpx.AsyncClient | None = None,
) -> Transport:
    """Build the transport variant for a mode."""
    if mode == BridgeMode.STDIO:
        return StdioTransport()
    if mode == BridgeMode.HTTP:
        return HttpTransport(url, timeout=timeout, http_client=http_client)
    raise ValueError(f"Unsupported bridge mode: {mode}")
