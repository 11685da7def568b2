"""Sequential Thinking MCP Server.

FastMCP 2.0 implementation exposing one stateful tool, ``sequentialthinking``.
The calling LLM does all reasoning; the tool records each thought in a
per-session ledger, tracks revisions and branches, and echoes the state back.

Run with: sequential-thinking-mcp
Or: python -m sequential_thinking.server
"""

# Note: We intentionally do NOT use `from __future__ import annotations` here
# because it causes issues with Pydantic/FastMCP type resolution.

import asyncio
from typing import Any

import uvicorn
from dotenv import load_dotenv
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_context
from fastmcp.tools.tool import Tool, ToolResult
from loguru import logger
from mcp.types import TextContent
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse

from sequential_thinking.config import Config, get_config, reload_config
from sequential_thinking.middleware import build_http_middleware
from sequential_thinking.tools.descriptor import INPUT_SCHEMA, TOOL_DESCRIPTION, TOOL_NAME
from sequential_thinking.tools.reaper import SessionReaper
from sequential_thinking.tools.service import ThinkingService
from sequential_thinking.tools.sessions import SessionRegistry
from sequential_thinking.transport import TransportCloser
from sequential_thinking.utils.logging import configure_logging

# Load environment variables from .env file (for local development)
load_dotenv()

# =============================================================================
# Service Instances
# =============================================================================

_service: ThinkingService | None = None

# Bound to the streamable HTTP session manager when the HTTP app is built
transport_closer = TransportCloser()


def get_thinking_service() -> ThinkingService:
    """Get or create the process-wide thinking service."""
    global _service
    if _service is None:
        config = get_config()
        registry = SessionRegistry(retired_id_limit=config.session.retired_id_limit)
        _service = ThinkingService(registry, thought_logging=config.logging.thought_logging)
    return _service


def reset_thinking_service() -> None:
    """Drop the process-wide service (for testing)."""
    global _service
    _service = None


def _current_session_id() -> str | None:
    """Session id of the MCP session serving the current request."""
    try:
        return get_context().session_id
    except RuntimeError:
        # No active request context (direct invocation outside a session)
        return None


# =============================================================================
# Initialize FastMCP Server
# =============================================================================

mcp = FastMCP(
    name=get_config().server.name,
    instructions="""Sequential Thinking MCP Server - per-session reasoning ledger.

ARCHITECTURE: You (the LLM) do ALL reasoning. The sequentialthinking tool
RECORDS each step, tracks revisions and branches, and echoes the state back.

WORKFLOW:
1. sequentialthinking(text="Break the problem down...", sequenceNumber=1,
   estimatedTotal=5, continuationNeeded=true)
2. Keep submitting thoughts; raise estimatedTotal whenever you need more room.
3. Revise with isRevision=true, revisesSequenceNumber=N.
4. Branch with branchOriginSequenceNumber=N, branchId="alt-a".
5. Finish with continuationNeeded=false.

Each session keeps its own ledger; idle sessions expire after the configured timeout.
""",
)


# =============================================================================
# TOOL: SEQUENTIALTHINKING
# =============================================================================


class SequentialThinkingTool(Tool):
    """Tool forwarding raw arguments to the thinking service.

    Arguments are passed through untouched so the service's own validation
    decides what is accepted; the descriptor schema is advisory for clients.
    """

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        session_id = _current_session_id()
        service = get_thinking_service()

        # The transport owns the initialize handshake; first sight of its id opens the ledger.
        await service.admit(session_id, on_close=transport_closer.close)

        result = await service.call_tool(self.name, session_id, arguments)
        if result.is_error:
            raise ToolError(result.text)
        return ToolResult(content=[TextContent(type="text", text=result.text)])


sequential_thinking_tool = SequentialThinkingTool(
    name=TOOL_NAME,
    description=TOOL_DESCRIPTION,
    parameters=INPUT_SCHEMA,
)
mcp.add_tool(sequential_thinking_tool)


# =============================================================================
# HEALTH CHECK
# =============================================================================


@mcp.custom_route("/health", methods=["GET"])
async def health(request: Request) -> JSONResponse:
    """Report liveness and the number of active sessions."""
    stats = await get_thinking_service().stats()
    return JSONResponse(
        {
            "status": "ok",
            "transport": get_config().server.transport,
            "activeSessions": stats["activeSessions"],
        }
    )


# =============================================================================
# SERVER ENTRY POINT
# =============================================================================


def build_reaper(config: Config, service: ThinkingService) -> SessionReaper:
    """Create the idle-session reaper from configuration."""
    return SessionReaper(
        service.registry,
        interval=config.session.cleanup_interval,
        max_idle=config.session.max_idle,
    )


def build_http_app(config: Config, transport: str = "http") -> Starlette:
    """Build the HTTP app and let evictions close its transport sessions."""
    app = mcp.http_app(
        path=config.server.path,
        middleware=build_http_middleware(config, get_thinking_service),
        transport=transport,
    )
    if transport == "http":
        transport_closer.bind(app)
    return app


async def serve(config: Config) -> None:
    """Run the MCP server with the session reaper alongside it."""
    reaper = build_reaper(config, get_thinking_service())
    reaper.start()

    server = config.server
    transport = server.transport
    if transport == "streamable-http":
        transport = "http"
    if transport not in ("http", "sse", "stdio"):
        logger.warning(f"Unknown transport '{transport}', falling back to http")
        transport = "http"

    try:
        if transport == "stdio":
            await mcp.run_async(transport="stdio")
        else:
            logger.info(f"MCP endpoint: http://{server.host}:{server.port}{server.path}")
            logger.info(f"Allowed origins: {', '.join(config.cors.allowed_origins)}")
            app = build_http_app(config, transport)
            uvicorn_config = uvicorn.Config(
                app,
                host=server.host,
                port=server.port,
                lifespan="on",
                timeout_graceful_shutdown=0,
                log_level=config.logging.level.lower(),
            )
            await uvicorn.Server(uvicorn_config).serve()
    finally:
        await reaper.stop()


def main() -> None:
    """Run the Sequential Thinking MCP server."""
    config = reload_config()
    configure_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file or None,
    )
    logger.info(f"Starting {config.server.name} (transport: {config.server.transport})")
    logger.debug(f"Configuration: {config.to_dict()}")

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Server stopped")


if __name__ == "__main__":
    main()
