"""Async session manager base class.

Provides the serialized storage shared by every session-scoped component:
one asyncio.Lock guards the id -> state mapping, so call handling, explicit
termination and the idle reaper never interleave their mutations.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Generic, Protocol, TypeVar, runtime_checkable

from sequential_thinking.utils.errors import SessionNotFoundError


@runtime_checkable
class HasLastActivity(Protocol):
    """Protocol for session states carrying a last-activity timestamp."""

    last_activity: datetime


T = TypeVar("T", bound=HasLastActivity)


class AsyncSessionManager(Generic[T]):
    """Async-native session manager using asyncio.Lock.

    Provides:
    - Non-blocking session storage with asyncio.Lock
    - Async context manager for atomic session operations
    - Activity refresh on every lookup through ``session()``
    - Retired-id tracking so removed ids are never resurrected

    Usage:
        class MyRegistry(AsyncSessionManager[MyState]):
            async def do_something(self, session_id: str) -> dict:
                async with self.session(session_id) as state:
                    state.value = "updated"
                    return {"status": "ok"}
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = datetime.now,
        retired_id_limit: int = 10000,
    ) -> None:
        """Initialize async session manager with empty sessions and async lock.

        Args:
            clock: Time source for activity timestamps.
            retired_id_limit: How many removed ids to remember.

        """
        self._sessions: dict[str, T] = {}
        self._retired: OrderedDict[str, None] = OrderedDict()
        self._retired_id_limit = retired_id_limit
        self._lock = asyncio.Lock()
        self._clock = clock

    def now(self) -> datetime:
        """Current time according to the injected clock."""
        return self._clock()

    def _get_session_unsafe(self, session_id: str | None) -> T:
        """Get session by ID without lock (caller must hold lock).

        Raises:
            SessionNotFoundError: If session doesn't exist.

        """
        if session_id is None or session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        return self._sessions[session_id]

    def _retire_unsafe(self, session_id: str) -> None:
        self._retired[session_id] = None
        self._retired.move_to_end(session_id)
        while len(self._retired) > self._retired_id_limit:
            self._retired.popitem(last=False)

    def _remove_unsafe(self, session_id: str) -> T | None:
        state = self._sessions.pop(session_id, None)
        if state is not None:
            self._retire_unsafe(session_id)
        return state

    @asynccontextmanager
    async def session(self, session_id: str | None) -> AsyncGenerator[T, None]:
        """Async context manager for atomic session operations.

        Acquires the lock, retrieves the session, refreshes its activity
        timestamp and yields it. The lock is held until the block exits.

        Raises:
            SessionNotFoundError: If session doesn't exist.

        Example:
            async with self.session(session_id) as state:
                state.ledger.append(record)

        """
        async with self._lock:
            state = self._get_session_unsafe(session_id)
            state.last_activity = self.now()
            yield state

    async def session_exists(self, session_id: str | None) -> bool:
        """Check if session exists (async-safe)."""
        async with self._lock:
            return session_id is not None and session_id in self._sessions

    async def session_count(self) -> int:
        """Get number of active sessions (async-safe)."""
        async with self._lock:
            return len(self._sessions)

    def is_retired(self, session_id: str | None) -> bool:
        """Whether the id belonged to a session that was removed."""
        return session_id is not None and session_id in self._retired

    async def register_session(self, session_id: str, state: T) -> None:
        """Register a new session (async-safe).

        Raises:
            SessionNotFoundError: If the id was retired.

        """
        async with self._lock:
            if self.is_retired(session_id):
                raise SessionNotFoundError(session_id)
            self._sessions[session_id] = state

    async def remove_session(self, session_id: str | None) -> T | None:
        """Remove a session (async-safe).

        Returns:
            Removed session state, or None if not found.

        """
        if session_id is None:
            return None
        async with self._lock:
            return self._remove_unsafe(session_id)

    async def touch(self, session_id: str | None) -> bool:
        """Refresh a session's activity timestamp.

        Returns:
            True if the session exists.

        """
        async with self._lock:
            state = self._sessions.get(session_id) if session_id is not None else None
            if state is None:
                return False
            state.last_activity = self.now()
            return True

    async def cleanup_stale(
        self,
        max_age: timedelta,
        *,
        now: datetime | None = None,
        predicate: Callable[[T], bool] | None = None,
    ) -> list[T]:
        """Remove sessions idle for longer than max_age (async-safe).

        Args:
            max_age: Maximum idle time. Sessions whose ``last_activity`` is
                older than ``now - max_age`` are removed.
            now: Reference time (defaults to the injected clock).
            predicate: Optional additional filter. Only sessions where
                ``predicate(state)`` returns True are eligible for removal.

        Returns:
            Removed session states.

        """
        if now is None:
            now = self.now()

        cutoff = now - max_age

        async with self._lock:
            # Collect first to avoid dict mutation during iteration
            stale_ids = [
                session_id
                for session_id, state in self._sessions.items()
                if state.last_activity < cutoff and (predicate is None or predicate(state))
            ]
            removed: list[T] = []
            for session_id in stale_ids:
                state = self._remove_unsafe(session_id)
                if state is not None:
                    removed.append(state)

        return removed

    def get_all_sessions_snapshot(self) -> dict[str, T]:
        """Get a snapshot of all sessions (non-blocking, eventual consistency).

        Warning:
            The returned dict may be slightly stale. Reads that must be
            consistent go through ``session()`` or ``session_count()``.

        """
        return dict(self._sessions)
