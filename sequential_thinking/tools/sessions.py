"""Session registry binding opaque session ids to thought ledgers."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger

from sequential_thinking.tools.thinking import ThoughtLedger
from sequential_thinking.utils.errors import SessionNotFoundError
from sequential_thinking.utils.session import AsyncSessionManager

CloseHook = Callable[[str], Awaitable[None]]


@dataclass
class ThinkingSession:
    """One client session: its ledger and activity bookkeeping."""

    session_id: str
    created_at: datetime
    last_activity: datetime
    ledger: ThoughtLedger = field(default_factory=ThoughtLedger)
    on_close: CloseHook | None = None

    async def close(self) -> None:
        """Ask the transport to release this session's resources."""
        if self.on_close is not None:
            await self.on_close(self.session_id)


class SessionRegistry(AsyncSessionManager[ThinkingSession]):
    """Maps session ids to ledgers and owns their lifecycle.

    The four transitions are: open (init call), resolve (every later call),
    terminate (explicit close by the client) and evict (idle timeout).
    Ids that were terminated or evicted are never handed out again.
    """

    async def open_session(
        self,
        session_id: str | None = None,
        *,
        on_close: CloseHook | None = None,
    ) -> ThinkingSession:
        """Create a session with an empty ledger.

        Args:
            session_id: Transport-assigned id, or None to generate one.
            on_close: Hook awaited when the reaper evicts the session.

        Returns:
            The new session, or the existing one if the id is already open.

        Raises:
            SessionNotFoundError: If the id was terminated or evicted.

        """
        async with self._lock:
            if session_id is None:
                session_id = str(uuid.uuid4())
            elif session_id in self._sessions:
                existing = self._sessions[session_id]
                existing.last_activity = self.now()
                return existing
            elif self.is_retired(session_id):
                raise SessionNotFoundError(session_id)

            now = self.now()
            state = ThinkingSession(
                session_id=session_id,
                created_at=now,
                last_activity=now,
                on_close=on_close,
            )
            self._sessions[session_id] = state

        logger.info(f"New session initialized: {session_id}")
        return state

    async def resolve(self, session_id: str | None, *, init: bool = False) -> ThinkingSession:
        """Look up the session for a call, refreshing its activity.

        Args:
            session_id: Id carried by the call.
            init: Whether the call is a session-initialization call.

        Raises:
            SessionNotFoundError: For an unknown or missing id on a non-init
                call, or a retired id on any call.

        """
        if init and not await self.session_exists(session_id):
            return await self.open_session(session_id)
        async with self.session(session_id) as state:
            return state

    async def admit(
        self,
        session_id: str | None,
        *,
        on_close: CloseHook | None = None,
    ) -> bool:
        """Open a transport-assigned id on first sight.

        Used by transports that run the initialization handshake themselves
        and only surface the id on later calls.

        Args:
            session_id: Transport-assigned id.
            on_close: Hook awaited when the reaper evicts the session.

        Returns:
            False if the id was retired or missing, True otherwise.

        """
        if session_id is None or self.is_retired(session_id):
            return False
        try:
            await self.open_session(session_id, on_close=on_close)
        except SessionNotFoundError:
            return False
        return True

    async def terminate(self, session_id: str | None) -> ThinkingSession | None:
        """Remove a session at the client's request.

        Idempotent: terminating an unknown or already removed id is a no-op.

        Returns:
            The removed session, or None if there was nothing to remove.

        """
        state = await self.remove_session(session_id)
        if state is not None:
            logger.info(f"Session closed: {session_id}")
        return state

    async def evict_idle(
        self,
        max_idle: timedelta,
        *,
        now: datetime | None = None,
    ) -> list[ThinkingSession]:
        """Remove every session idle for longer than max_idle."""
        return await self.cleanup_stale(max_idle, now=now)
