"""Cancellable delayed execution of the latest submitted call."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_DELAY: float = 0.3  # seconds


class Debouncer:
    """Runs only the most recently submitted coroutine after a quiet period.

    Submitting again before the delay has elapsed cancels the pending timer
    and replaces it, so a burst of submissions results in a single call with
    the last arguments. A call that has already started is not cancelled.

    Examples:
        >>> debouncer = Debouncer(0.3)
        >>> debouncer.submit(engine.run_search, "a")
        >>> debouncer.submit(engine.run_search, "ab")  # replaces "a"
        >>> await debouncer.wait()  # run_search("ab") ran once
    """

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_DELAY):
        self.delay = delay
        self._timer: Optional[asyncio.Task] = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a submitted call is waiting for its delay."""
        return self._timer is not None and not self._timer.done()

    def cancel(self) -> None:
        """Drop the pending call, if any."""
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
            logger.debug("Cancelled pending debounced call")

    def submit(
        self, func: Callable[..., Awaitable[Any]], *args: Any
    ) -> asyncio.Task:
        """Schedule ``func(*args)`` after the delay, replacing any pending call.

        Must be called from within a running event loop.
        """
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(
            self._fire(func, args)
        )
        return self._timer

    async def _fire(self, func: Callable[..., Awaitable[Any]], args: tuple) -> None:
        await asyncio.sleep(self.delay)
        task = asyncio.current_task()
        if task is not None:
            self._running.add(task)
        if self._timer is task:
            self._timer = None
        try:
            await func(*args)
        finally:
            if task is not None:
                self._running.discard(task)

    async def wait(self) -> None:
        """Wait until the pending call (and any started call) has finished."""
        while self.pending or self._running:
            tasks = [t for t in (self._timer, *self._running) if t is not None]
            await asyncio.gather(*tasks, return_exceptions=True)
