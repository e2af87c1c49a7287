"""End-to-end bridge tests against the stub JSON-RPC child process."""

import asyncio
import sys

import pytest

from taxbridge.bridge import Bridge, BridgeState
from taxbridge.config.schema import BridgeConfig
from taxbridge.utils.exceptions import (
    BridgeClosed,
    InitializationError,
    NotReadyError,
    RemoteError,
    RequestTimeout,
    TransportError,
)


@pytest.mark.asyncio
async def test_call_tool_returns_result_from_child(stub_config):
    bridge = Bridge(stub_config("echo"))
    await bridge.initialize()
    try:
        assert bridge.state == BridgeState.READY
        assert bridge.server_info == {"name": "stub", "version": "1.0"}
        result = await bridge.call_tool("get_tax_obligations", {"year": 2024})
        assert result == {"ok": True}
    finally:
        await bridge.shutdown()
    assert bridge.state == BridgeState.CLOSED


@pytest.mark.asyncio
async def test_list_tools_returns_descriptors(stub_config):
    async with Bridge(stub_config("echo")) as bridge:
        tools = await bridge.list_tools()
    assert [t.name for t in tools] == ["get_tax_obligations", "calculate_tax_estimate"]
    assert tools[1].input_schema["required"] == ["income"]


@pytest.mark.asyncio
async def test_initialize_path_argument_overrides_config(stub_config):
    config = stub_config("echo").model_copy(update={"server_path": ""})
    bridge = Bridge(config)
    await bridge.initialize(str(stub_config().server_path))
    try:
        assert await bridge.call("echo", {"a": 1}) == {"a": 1}
    finally:
        await bridge.shutdown()


@pytest.mark.asyncio
async def test_remote_error_is_passed_through(stub_config):
    async with Bridge(stub_config("echo")) as bridge:
        with pytest.raises(RemoteError) as exc:
            await bridge.call("fail", {})
        assert exc.value.rpc_code == -32000
        assert exc.value.message == "boom"
        assert exc.value.data == {"why": "asked"}

        with pytest.raises(RemoteError) as tool_exc:
            await bridge.call_tool("missing_tool", {})
        assert tool_exc.value.rpc_code == -32601

        # The bridge keeps working after remote errors.
        assert await bridge.call("echo", "still here") == "still here"


@pytest.mark.asyncio
async def test_malformed_and_stray_lines_are_dropped(stub_config):
    async with Bridge(stub_config("echo")) as bridge:
        assert await bridge.call("noisy", {}) == "clean"
        assert bridge.state == BridgeState.READY
        assert bridge.pending_count == 0


@pytest.mark.asyncio
async def test_duplicate_response_resolves_once(stub_config):
    async with Bridge(stub_config("echo")) as bridge:
        assert await bridge.call("twice", {}) == "first"
        assert await bridge.call("echo", 1) == 1


@pytest.mark.asyncio
async def test_concurrent_calls_each_resolve_exactly_once(stub_config):
    async with Bridge(stub_config("echo")) as bridge:
        deferred = [asyncio.create_task(bridge.call("defer", {"n": n})) for n in range(10)]
        direct = [asyncio.create_task(bridge.call("echo", {"m": m})) for m in range(10)]
        await asyncio.sleep(0.2)
        assert await bridge.call("flush", {}) == "flushed"

        deferred_results = await asyncio.gather(*deferred)
        direct_results = await asyncio.gather(*direct)
        assert deferred_results == [{"n": n} for n in range(10)]
        assert direct_results == [{"m": m} for m in range(10)]
        assert bridge.pending_count == 0


@pytest.mark.asyncio
async def test_silent_child_times_out_with_request_id(stub_config):
    bridge = Bridge(stub_config("silent", timeout_seconds=0.3))
    await bridge.initialize()
    try:
        with pytest.raises(RequestTimeout) as exc:
            await bridge.call("tools/call", {"name": "get_tax_obligations", "arguments": {"year": 2024}})
        # id 1 is the handshake
        assert exc.value.request_id == 2
        assert exc.value.method == "tools/call"

        with pytest.raises(RequestTimeout) as second:
            await bridge.call("echo", {})
        assert second.value.request_id == 3
        assert bridge.state == BridgeState.READY
    finally:
        await bridge.shutdown()


@pytest.mark.asyncio
async def test_timeout_is_injectable_on_constructor(stub_config):
    bridge = Bridge(stub_config("silent", timeout_seconds=30.0), timeout_seconds=0.2)
    assert bridge.timeout_seconds == 0.2
    async with bridge:
        with pytest.raises(RequestTimeout):
            await bridge.call("echo", {})


@pytest.mark.asyncio
async def test_child_exiting_at_spawn_fails_initialize(stub_config):
    bridge = Bridge(stub_config("exit"))
    with pytest.raises(InitializationError) as exc:
        await bridge.initialize()
    # Depending on timing the handshake sees the exit or the broken stdin pipe first.
    assert isinstance(exc.value.__cause__, (BridgeClosed, TransportError))
    assert bridge.state == BridgeState.CLOSED
    assert bridge.pending_count == 0

    with pytest.raises(NotReadyError):
        await bridge.call("echo", {})


@pytest.mark.asyncio
async def test_child_crash_fails_in_flight_calls(stub_config):
    bridge = Bridge(stub_config("echo"))
    await bridge.initialize()
    waiting = asyncio.create_task(bridge.call("defer", {"n": 1}))
    await asyncio.sleep(0.1)

    with pytest.raises(BridgeClosed) as exc:
        await bridge.call("crash", {})
    assert "7" in exc.value.reason
    with pytest.raises(BridgeClosed):
        await waiting

    with pytest.raises(NotReadyError):
        await bridge.call("echo", {})
    await bridge.shutdown()
    assert bridge.state == BridgeState.CLOSED


@pytest.mark.asyncio
async def test_shutdown_rejects_pending_and_is_idempotent(stub_config):
    bridge = Bridge(stub_config("silent"))
    await bridge.initialize()
    waiting = asyncio.create_task(bridge.call("echo", {}))
    await asyncio.sleep(0.1)

    await bridge.shutdown()
    with pytest.raises(BridgeClosed):
        await waiting
    assert bridge.state == BridgeState.CLOSED

    await bridge.shutdown()
    await asyncio.gather(bridge.shutdown(), bridge.shutdown())
    with pytest.raises(NotReadyError):
        await bridge.call("echo", {})


@pytest.mark.asyncio
async def test_handshake_error_fails_initialize(stub_config):
    bridge = Bridge(stub_config("bad-handshake"))
    with pytest.raises(InitializationError) as exc:
        await bridge.initialize()
    assert isinstance(exc.value.__cause__, RemoteError)
    assert bridge.state == BridgeState.CLOSED


@pytest.mark.asyncio
async def test_handshake_timeout_fails_initialize(stub_config):
    config = stub_config("echo", timeout_seconds=0.3).model_copy(
        update={"command": sys.executable, "server_path": "-c", "args": ["import time; time.sleep(30)"]}
    )
    bridge = Bridge(config)
    with pytest.raises(InitializationError) as exc:
        await bridge.initialize()
    assert isinstance(exc.value.__cause__, RequestTimeout)
    assert bridge.state == BridgeState.CLOSED


@pytest.mark.asyncio
async def test_missing_executable_fails_initialize():
    bridge = Bridge(BridgeConfig(mode="stdio", command="/nonexistent/taxbridge-node", server_path="server.js"))
    with pytest.raises(InitializationError):
        await bridge.initialize()
    assert bridge.state == BridgeState.CLOSED
    await bridge.shutdown()


@pytest.mark.asyncio
async def test_missing_server_path_fails_initialize():
    bridge = Bridge(BridgeConfig(mode="stdio", server_path=""))
    with pytest.raises(InitializationError):
        await bridge.initialize()
    assert bridge.state == BridgeState.CLOSED


@pytest.mark.asyncio
async def test_initialize_twice_is_rejected(stub_config):
    async with Bridge(stub_config("echo")) as bridge:
        with pytest.raises(InitializationError):
            await bridge.initialize()
        assert bridge.state == BridgeState.READY


@pytest.mark.asyncio
async def test_oversized_stdout_line_is_dropped(stub_config):
    async with Bridge(stub_config("echo", stream_limit_bytes=1024)) as bridge:
        assert await bridge.call("oversize", {}) == "after-oversize"
        assert bridge.pending_count == 0
        assert await bridge.call("echo", {"still": "here"}) == {"still": "here"}
        assert bridge.state == BridgeState.READY


@pytest.mark.asyncio
async def test_oversized_stderr_output_does_not_break_calls_or_shutdown(stub_config):
    bridge = Bridge(stub_config("stderr-flood", stream_limit_bytes=1024))
    await bridge.initialize()
    try:
        assert await bridge.call("echo", {"n": 1}) == {"n": 1}
        await asyncio.sleep(0.1)
        assert await bridge.call("echo", {"n": 2}) == {"n": 2}
    finally:
        await bridge.shutdown()
    assert bridge.state == BridgeState.CLOSED
    await bridge.shutdown()


@pytest.mark.asyncio
async def test_handshake_without_transport_raises_not_ready():
    bridge = Bridge(BridgeConfig(mode="stdio", server_path="server.js"))
    with pytest.raises(NotReadyError):
        await bridge._handshake()
    assert bridge.pending_count == 0
