"""Custom exceptions for the Sequential Thinking MCP server."""

from __future__ import annotations

from typing import Any


class SequentialThinkingException(Exception):
    """Base exception for the Sequential Thinking server.

    Every subclass renders to the structured failure body returned to the
    calling agent, so callers never have to inspect exception types.
    """

    def to_dict(self) -> dict[str, Any]:
        """Convert to the failure body sent back over the transport.

        Returns:
            Dictionary with the error message and a ``failed`` status.

        """
        return {"error": str(self), "status": "failed"}


class ValidationError(SequentialThinkingException):
    """Raised when a call payload is missing or mistypes a required field."""

    pass


class SessionNotFoundError(SequentialThinkingException):
    """Raised when a call references a session the registry does not hold."""

    def __init__(self, session_id: str | None) -> None:
        self.session_id = session_id
        if session_id:
            super().__init__(f"Session not found: {session_id}")
        else:
            super().__init__("Session not found for tool call")


class UnknownToolError(SequentialThinkingException):
    """Raised when a call names a tool other than the one this server exposes."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")
