"""Close transport-level sessions on behalf of the session reaper.

The streamable HTTP transport keeps one ``StreamableHTTPServerTransport`` per
session id until the client sends DELETE. When the reaper evicts an idle
ledger, the matching transport is terminated here so its streams and server
task are released too.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from starlette.applications import Starlette


class TransportCloser:
    """Terminates streamable HTTP transport sessions by id.

    Unbound (stdio, SSE, in-memory clients) it does nothing.

    Usage:
        closer = TransportCloser()
        closer.bind(mcp.http_app(path="/mcp"))
        await closer.close(session_id)
    """

    def __init__(self, session_manager: Any | None = None) -> None:
        self.session_manager = session_manager

    def bind(self, app: Starlette) -> bool:
        """Find the session manager serving an HTTP app.

        Returns:
            True if a streamable HTTP session manager was found.

        """
        for route in app.routes:
            endpoint = getattr(route, "endpoint", None)
            # Auth-protected routes wrap the ASGI app once.
            for candidate in (endpoint, getattr(endpoint, "app", None)):
                session_manager = getattr(candidate, "session_manager", None)
                if session_manager is not None:
                    self.session_manager = session_manager
                    return True
        logger.debug("No streamable HTTP session manager found; transport closing disabled")
        return False

    async def close(self, session_id: str) -> None:
        """Forget the transport for session_id and terminate it."""
        if self.session_manager is None:
            return
        # The session manager exposes no public lookup by id.
        transport = self.session_manager._server_instances.pop(session_id, None)
        getattr(self.session_manager, "_session_owners", {}).pop(session_id, None)
        if transport is None:
            return
        if not transport.is_terminated:
            await transport.terminate()
        logger.info(f"Transport closed for session {session_id}")
