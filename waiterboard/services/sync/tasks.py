"""Cancellable timers for refreshes, debounced saves and pollers."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


class DebouncedTask:
    """
    Reschedulable one-shot timer.

    Scheduling again before the timer fires cancels the pending timer. Once the
    timer fires the callback runs detached: a later schedule never cancels a run
    that is already in flight.
    """

    def __init__(self, callback: Callback, name: str = "debounced"):
        self.callback = callback
        self.name = name
        self._timer: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """True while a timer is waiting to fire."""
        return self._timer is not None and not self._timer.done()

    @property
    def in_flight(self) -> int:
        """Number of callback runs not yet finished."""
        return len(self._running)

    def schedule(self, delay: float) -> None:
        """(Re)arm the timer."""
        if self.pending:
            self._timer.cancel()
        self._timer = asyncio.create_task(self._fire_after(delay), name=f"{self.name}-timer")

    def cancel(self) -> None:
        """Cancel the pending timer, leaving in-flight runs alone."""
        if self.pending:
            self._timer.cancel()
        self._timer = None

    async def _fire_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        run = asyncio.create_task(self._run(), name=f"{self.name}-run")
        self._running.add(run)
        run.add_done_callback(self._running.discard)

    async def _run(self) -> None:
        try:
            await self.callback()
        except Exception as e:
            logger.error(f"[TASKS] {self.name} failed: {e}", exc_info=True)

    async def join(self) -> None:
        """Wait until the pending timer fired and every run finished."""
        while self.pending or self._running:
            if self.pending:
                await asyncio.wait({self._timer})
            if self._running:
                await asyncio.gather(*list(self._running), return_exceptions=True)


class PeriodicTask:
    """Runs a callback every `interval` seconds until stopped."""

    def __init__(
        self,
        callback: Callback,
        interval: float,
        initial_delay: Optional[float] = None,
        name: str = "periodic",
    ):
        self.callback = callback
        self.interval = interval
        self.initial_delay = interval if initial_delay is None else initial_delay
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        """True while the loop is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop; a running loop is left untouched."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.debug(f"[TASKS] Started {self.name} every {self.interval}s")

    def stop(self) -> None:
        """Stop the loop."""
        if self.running:
            self._task.cancel()
            logger.debug(f"[TASKS] Stopped {self.name}")
        self._task = None

    async def _loop(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            try:
                await self.callback()
            except Exception as e:
                logger.error(f"[TASKS] {self.name} tick failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)
