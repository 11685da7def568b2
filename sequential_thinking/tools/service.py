"""Core boundary between the transport and the thinking ledgers.

Every public coroutine here is total: errors detected in the core come back
as a structured failure result, never as an exception, so a failed call
never ends the session it arrived on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import orjson
from loguru import logger

from sequential_thinking.tools.descriptor import TOOL_NAME, tool_descriptor
from sequential_thinking.tools.sessions import CloseHook, SessionRegistry
from sequential_thinking.tools.thinking import format_thought, validate_thought_data
from sequential_thinking.utils.errors import (
    SequentialThinkingException,
    UnknownToolError,
)
from sequential_thinking.utils.logging import log_context


def _json(data: dict[str, Any], *, indent: bool = True) -> str:
    """Serialize data to a JSON string.

    Type-safe wrapper around orjson.dumps that returns str.
    """
    opts = orjson.OPT_INDENT_2 if indent else 0
    result: bytes = orjson.dumps(data, option=opts, default=str)
    return result.decode("utf-8")


@dataclass
class ToolCallResult:
    """Structured content returned for one tool call."""

    content: list[dict[str, str]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def success(cls, body: dict[str, Any]) -> ToolCallResult:
        return cls(content=[{"type": "text", "text": _json(body)}])

    @classmethod
    def failure(cls, error: SequentialThinkingException) -> ToolCallResult:
        return cls(content=[{"type": "text", "text": _json(error.to_dict())}], is_error=True)

    @property
    def text(self) -> str:
        """Text of the first content block."""
        return self.content[0]["text"] if self.content else ""

    @property
    def body(self) -> dict[str, Any]:
        """Parsed JSON body of the first content block."""
        parsed: dict[str, Any] = orjson.loads(self.text) if self.text else {}
        return parsed

    def to_dict(self) -> dict[str, Any]:
        """Convert to the MCP CallToolResult shape."""
        return {"content": self.content, "isError": self.is_error}


class ThinkingService:
    """Routes tool calls to the right session's ledger.

    Usage:
        service = ThinkingService()
        session_id = await service.open_session()
        result = await service.call_tool("sequentialthinking", session_id, payload)
    """

    def __init__(
        self,
        registry: SessionRegistry | None = None,
        *,
        thought_logging: bool = True,
    ) -> None:
        self.registry = registry if registry is not None else SessionRegistry()
        self.thought_logging = thought_logging

    def list_tools(self) -> list[dict[str, Any]]:
        """Return the descriptors served on a list-tools call."""
        return [tool_descriptor()]

    async def open_session(
        self,
        session_id: str | None = None,
        *,
        on_close: CloseHook | None = None,
    ) -> str:
        """Handle a session-initialization call.

        Returns:
            Id of the new session, to be surfaced to the caller.

        """
        state = await self.registry.open_session(session_id, on_close=on_close)
        return state.session_id

    async def admit(
        self,
        session_id: str | None,
        *,
        on_close: CloseHook | None = None,
    ) -> bool:
        """Open a transport-assigned session id the first time it is seen."""
        if await self.registry.session_exists(session_id):
            return True
        return await self.registry.admit(session_id, on_close=on_close)

    async def touch(self, session_id: str | None) -> bool:
        """Refresh activity for a call that does not reach the tool (stream reads)."""
        return await self.registry.touch(session_id)

    async def terminate_session(self, session_id: str | None) -> bool:
        """Handle an explicit termination call.

        Returns:
            True if a session was removed, False if it was already gone.

        """
        return await self.registry.terminate(session_id) is not None

    async def call_tool(
        self,
        tool_name: str,
        session_id: str | None,
        payload: Any,
    ) -> ToolCallResult:
        """Validate a payload and append it to the session's ledger.

        Args:
            tool_name: Name of the tool the caller invoked.
            session_id: Id of the calling session.
            payload: Raw tool arguments.

        Returns:
            Success result with the ledger summary, or a failure result.

        """
        with log_context(session_id=session_id, tool_name=tool_name):
            try:
                async with self.registry.session(session_id) as state:
                    if tool_name != TOOL_NAME:
                        raise UnknownToolError(tool_name)
                    record = validate_thought_data(payload)
                    # Render the reply before committing so a failure leaves the ledger as it was.
                    result = ToolCallResult.success(state.ledger.preview(record).to_dict())
                    state.ledger.append(record)
                    stored = state.ledger.history[-1]
            except SequentialThinkingException as e:
                logger.debug(f"Tool call rejected: {e}")
                return ToolCallResult.failure(e)
            except Exception as e:
                logger.exception(f"Tool call failed: {e}")
                return ToolCallResult.failure(SequentialThinkingException(str(e)))

            if self.thought_logging:
                logger.info("\n" + format_thought(stored))
            return result

    async def stats(self, now: datetime | None = None) -> dict[str, Any]:
        """Summarize live sessions for health reporting."""
        if now is None:
            now = self.registry.now()
        snapshot = self.registry.get_all_sessions_snapshot()
        return {
            "activeSessions": len(snapshot),
            "thoughts": sum(len(state.ledger) for state in snapshot.values()),
            "oldestIdleSeconds": max(
                ((now - state.last_activity).total_seconds() for state in snapshot.values()),
                default=0.0,
            ),
        }
