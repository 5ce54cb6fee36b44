"""Cooperative cancellation for optimizer runs."""

import asyncio
from typing import Optional


class CancellationToken:
    """Signal checked by the optimizer at every phase transition.

    ``cancel`` may be called from any coroutine on the running loop, or
    before any loop exists; use ``cancel_threadsafe`` from another thread.
    The underlying event is created inside the loop that waits on it, so a
    token built ahead of ``GEPAOptimizer.optimize`` works with the loop that
    call starts.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def cancel_threadsafe(self, loop: asyncio.AbstractEventLoop) -> None:
        loop.call_soon_threadsafe(self.cancel)

    async def wait(self) -> None:
        await self._bound_event().wait()

    def _bound_event(self) -> asyncio.Event:
        loop = asyncio.get_running_loop()
        if self._event is None or self._loop is not loop:
            self._event = asyncio.Event()
            self._loop = loop
            if self._cancelled:
                self._event.set()
        return self._event
