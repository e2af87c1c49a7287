"""Request correlation: id allocation, pending table and per-request timeouts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

from taxbridge.utils.exceptions import RequestTimeout

from .protocol import RpcResponse
from .serialization import to_remote_error

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(slots=True)
class PendingEntry:
    """Bookkeeping for one in-flight request."""

    id: int
    method: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle
    started_at: float


class Correlator:
    """Match responses to pending requests by id.

    Every mutation of the pending table happens on the event loop with no
    suspension point between lookup and removal, so resolve, reject, timeout
    and reject_all are mutually exclusive per id: the first one wins and the
    others become no-ops.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.timeout_seconds = timeout_seconds
        self._last_id = 0
        self._pending: dict[int, PendingEntry] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    def next_id(self) -> int:
        self._last_id += 1
        return self._last_id

    def register(self, request_id: int, method: str = "") -> asyncio.Future[Any]:
        """Create a pending entry, arm its timeout and return the future to await."""
        if request_id in self._pending:
            raise ValueError(f"request id {request_id} is already pending")
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        timer = loop.call_later(self.timeout_seconds, self._on_timeout, request_id)
        self._pending[request_id] = PendingEntry(
            id=request_id,
            method=method,
            future=future,
            timer=timer,
            started_at=loop.time(),
        )
        return future

    def _pop(self, request_id: int) -> PendingEntry | None:
        entry = self._pending.pop(request_id, None)
        if entry is not None:
            entry.timer.cancel()
        return entry

    def resolve(self, request_id: int, result: Any) -> bool:
        entry = self._pop(request_id)
        if entry is None:
            logger.warning("Dropping result for unknown or completed request id {}", request_id)
            return False
        if not entry.future.done():
            entry.future.set_result(result)
        return True

    def reject(self, request_id: int, error: BaseException) -> bool:
        entry = self._pop(request_id)
        if entry is None:
            logger.warning("Dropping error for unknown or completed request id {}: {}", request_id, error)
            return False
        if not entry.future.done():
            entry.future.set_exception(error)
        return True

    def dispatch(self, response: RpcResponse) -> bool:
        """Route a decoded response to resolve or reject."""
        if response.ok:
            return self.resolve(response.id, response.result)
        return self.reject(response.id, to_remote_error(response))

    def discard(self, request_id: int) -> None:
        """Forget a pending entry without completing it (the waiter went away)."""
        self._pop(request_id)

    def _on_timeout(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        elapsed = asyncio.get_running_loop().time() - entry.started_at
        logger.warning("Request {} ({}) timed out after {:.2f}s", request_id, entry.method, elapsed)
        if not entry.future.done():
            entry.future.set_exception(RequestTimeout(request_id, entry.method, elapsed))

    def reject_all(self, error: BaseException) -> int:
        """Fail every pending request with the given error; returns how many were failed."""
        drained, self._pending = self._pending, {}
        count = 0
        for entry in drained.values():
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(error)
                count += 1
        if drained:
            logger.info("Rejected {} pending request(s): {}", count, error)
        return count
