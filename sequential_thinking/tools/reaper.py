"""Periodic eviction of idle sessions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from loguru import logger

from sequential_thinking.tools.sessions import SessionRegistry


class SessionReaper:
    """Sweeps the registry on a fixed interval and evicts idle sessions.

    Eviction is cooperative cleanup: a session that survives a sweep only
    costs memory until the next one. Each evicted session's transport hook
    runs independently, so one failing close never blocks the others.

    Example:
        reaper = SessionReaper(registry, interval=timedelta(minutes=5),
                               max_idle=timedelta(hours=1))
        reaper.start()
        ...
        await reaper.stop()

    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        interval: timedelta = timedelta(minutes=5),
        max_idle: timedelta = timedelta(minutes=60),
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._interval = interval
        self._max_idle = max_idle
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> timedelta:
        return self._interval

    @property
    def max_idle(self) -> timedelta:
        return self._max_idle

    @property
    def running(self) -> bool:
        """Whether the periodic task is scheduled and not finished."""
        return self._task is not None and not self._task.done()

    async def sweep(self, now: datetime | None = None) -> list[str]:
        """Run one eviction pass.

        Args:
            now: Reference time (defaults to the reaper's clock, then the
                registry's).

        Returns:
            Ids of the evicted sessions.

        """
        if now is None and self._clock is not None:
            now = self._clock()

        count = await self._registry.session_count()
        if count:
            logger.debug(f"Running session cleanup. Currently {count} active sessions.")

        evicted = await self._registry.evict_idle(self._max_idle, now=now)
        for state in evicted:
            logger.info(f"Session {state.session_id} timed out. Cleaning up.")
            try:
                await state.close()
            except Exception as e:
                logger.warning(f"Failed to close transport for session {state.session_id}: {e}")

        return [state.session_id for state in evicted]

    async def _run(self) -> None:
        logger.info(
            f"Session cleanup task started (max_idle={self._max_idle}, "
            f"interval={self._interval})"
        )
        while True:
            try:
                await self._sleep(self._interval.total_seconds())
                await self.sweep()
            except asyncio.CancelledError:
                logger.info("Session cleanup task cancelled")
                break
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}")
                # Continue running despite errors

    def start(self) -> asyncio.Task[None]:
        """Schedule the periodic sweep on the running event loop.

        Calling start on a running reaper returns the existing task.
        """
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
            logger.debug("Cleanup task scheduled")
        return self._task

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Cleanup task stopped")
