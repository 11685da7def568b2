"""ASGI middleware for the HTTP transports.

Origin checking and session lifecycle signals live here, in front of the
FastMCP app, so the core only ever sees well-formed tool calls.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger
from starlette.datastructures import Headers, MutableHeaders, QueryParams
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from sequential_thinking.config import Config, CorsConfig
from sequential_thinking.tools.service import ThinkingService

SESSION_HEADER = "mcp-session-id"


class OriginGuardMiddleware:
    """Reject requests whose Origin header is not in the allow list.

    Requests without an Origin (direct API calls, CLI clients) pass through;
    in development mode they also get a wildcard CORS header.
    """

    def __init__(self, app: ASGIApp, cors: CorsConfig) -> None:
        self.app = app
        self.cors = cors

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        origin = Headers(scope=scope).get("origin")
        if origin is None:
            if self.cors.development:
                await self.app(scope, receive, _with_wildcard_origin(send))
            else:
                await self.app(scope, receive, send)
            return

        if not self.cors.is_allowed(origin):
            logger.error(f"Rejected connection from unauthorized origin: {origin}")
            logger.error(f"Allowed origins: {', '.join(self.cors.allowed_origins)}")
            response = JSONResponse({"error": "Origin not allowed"}, status_code=403)
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)


def _with_wildcard_origin(send: Send) -> Send:
    async def wrapped(message: Message) -> None:
        if message["type"] == "http.response.start":
            headers = MutableHeaders(scope=message)
            headers.setdefault("access-control-allow-origin", "*")
        await send(message)

    return wrapped


class SessionLifecycleMiddleware:
    """Forward HTTP-level session signals to the thinking service.

    ``DELETE`` on the MCP endpoint terminates the session and ``GET`` (the
    server-to-client stream) refreshes its activity. The session id comes
    from the ``mcp-session-id`` header, or the ``sessionId`` query parameter
    for EventSource clients that cannot set headers.
    """

    def __init__(
        self,
        app: ASGIApp,
        path: str,
        service_getter: Callable[[], ThinkingService],
    ) -> None:
        self.app = app
        self.path = path.rstrip("/")
        self.service_getter = service_getter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].rstrip("/") == self.path:
            method = scope["method"]
            if method in ("GET", "DELETE"):
                session_id = Headers(scope=scope).get(SESSION_HEADER) or QueryParams(
                    scope["query_string"]
                ).get("sessionId")
                service = self.service_getter()
                if method == "DELETE":
                    await service.terminate_session(session_id)
                else:
                    await service.touch(session_id)

        await self.app(scope, receive, send)


def build_http_middleware(
    config: Config,
    service_getter: Callable[[], ThinkingService],
) -> list[Middleware]:
    """Assemble the middleware stack for HTTP transports, outermost first."""
    return [
        Middleware(OriginGuardMiddleware, cors=config.cors),
        Middleware(
            CORSMiddleware,
            allow_origins=list(config.cors.allowed_origins),
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", SESSION_HEADER],
            expose_headers=[SESSION_HEADER],
        ),
        Middleware(
            SessionLifecycleMiddleware,
            path=config.server.path,
            service_getter=service_getter,
        ),
    ]
