"""Periodic asyncio task with a shared shutdown event."""

from __future__ import annotations

import asyncio
import contextlib
import logging

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """Runs :meth:`_tick` every *interval* seconds until shut down.

    The loop ends when *shutdown_event* is set or :meth:`stop` cancels it.
    A tick that raises is logged and the loop carries on.
    """

    def __init__(self, shutdown_event: asyncio.Event, interval: float) -> None:
        self._shutdown_event = shutdown_event
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running or not self._should_start():
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def _should_start(self) -> bool:
        return True

    async def _tick(self) -> None:
        raise NotImplementedError

    async def _wait_interval(self) -> bool:
        """Wait one interval; ``True`` means shutdown was requested."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=self._interval)
        except TimeoutError:
            return False
        return True

    async def _run(self) -> None:
        while not await self._wait_interval():
            try:
                await self._tick()
            except Exception:
                logger.exception("%s tick failed", type(self).__name__)
