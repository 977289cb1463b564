"""Debounced background work with explicit cancellation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType

logger = logging.getLogger(__name__)


class DebouncedTask:
    """Run ``callback`` once, ``delay`` seconds after the last :meth:`schedule`.

    Every call to :meth:`schedule` restarts the timer. Nothing runs after
    :meth:`cancel` or :meth:`aclose`; a pending run is dropped, not flushed.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.delay = delay
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> None:
        """(Re)start the timer. Must be called from a running event loop."""
        if self._closed:
            return
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Run the callback now if a run is pending."""
        if not self.pending:
            return
        self.cancel()
        await self._invoke()

    async def wait(self) -> None:
        """Wait for the scheduled run, if any, to finish."""
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def aclose(self) -> None:
        self._closed = True
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> DebouncedTask:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        await self._invoke()

    async def _invoke(self) -> None:
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Debounced callback %r failed", self._callback)
