"""
FastAPI service exposing the MCP bridge over HTTP.

The app owns exactly one Bridge for its lifetime: it is created and
initialized in the lifespan, kept on ``app.state.bridge`` and shut down on exit.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
import uvicorn

from taxbridge.api.http.tool_methods import call_tool_response, health_response, list_tools_response
from taxbridge.bridge import Bridge, BridgeState
from taxbridge.config.access import get_config as get_cached_config
from taxbridge.config.schema import Config
from taxbridge.utils.exceptions import classify_exception, sanitize_error_message


def _bridge(request: Request) -> Bridge | None:
    return getattr(request.app.state, "bridge", None)


def create_app(config: Config | None = None, bridge: Bridge | None = None) -> FastAPI:
    """Create the FastAPI application.

    Pass ``bridge`` to reuse an existing (already initialized or not) bridge;
    the app still shuts it down when the lifespan ends.
    """
    cfg = config or get_cached_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = bridge or Bridge(cfg.bridge)
        app.state.bridge = owned
        if owned.state == BridgeState.UNINITIALIZED:
            try:
                await owned.initialize()
                logger.info("MCP bridge initialized")
            except Exception as exc:
                logger.error("Failed to initialize MCP bridge: {}", sanitize_error_message(str(exc)))
                logger.warning("Service will run without MCP integration")
        try:
            yield
        finally:
            await owned.shutdown()
            app.state.bridge = None

    app = FastAPI(title="taxbridge", lifespan=lifespan)
    app.state.bridge = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.server.allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        code, _, _ = classify_exception(exc)
        logger.exception("Unhandled exception [{}]: {}", code, sanitize_error_message(str(exc)))
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_ERROR", "message": "An unexpected error occurred", "code": code},
        )

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        return health_response(bridge=_bridge(request))

    @app.get("/api/tools")
    async def list_tools(request: Request):
        """Tools advertised by the MCP server."""
        return await list_tools_response(bridge=_bridge(request))

    @app.post("/api/tools/{tool_name}")
    async def call_tool(request: Request, tool_name: str, arguments: Any = Body(default=None)):
        """Direct tool execution, bypassing the chat loop."""
        status_code, payload = await call_tool_response(
            bridge=_bridge(request),
            tool_name=tool_name,
            arguments=arguments,
        )
        return JSONResponse(status_code=status_code, content=payload)

    return app


def run_server(config: Config | None = None, host: str | None = None, port: int | None = None) -> None:
    """Run the API server; uvicorn's signal handling drives the lifespan shutdown."""
    cfg = config or get_cached_config()
    uvicorn.run(
        create_app(cfg),
        host=host or cfg.server.host,
        port=port or cfg.server.port,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=10,
        log_level="warning",
    )
