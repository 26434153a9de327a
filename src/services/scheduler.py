"""
Debounced scan scheduler.

Every ledger change re-arms a short timer; the scan runs once the ledger
has been quiet for `delay_seconds`. A burst of edits therefore costs one
scan, and a timer armed before a change never fires on stale data.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

logger = structlog.get_logger(__name__)

ScanCallback = Callable[[], Union[Any, Awaitable[Any]]]


class DebouncedScheduler:
    """
    Reset-the-timer debouncer on the running asyncio loop.

    Usage:
        scheduler = DebouncedScheduler(1.0, tracker.run_scan)
        scheduler.arm()      # after each mutation
        scheduler.cancel()   # on shutdown
    """

    def __init__(self, delay_seconds: float, callback: ScanCallback):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must not be negative")
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._idle: Optional[asyncio.Event] = None

    @property
    def pending(self) -> bool:
        """True while a run is scheduled but has not started."""
        return self._handle is not None

    def arm(self) -> None:
        """
        Schedule a run after the delay, cancelling any pending one.

        Must be called from inside a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._drop_handle()
        if self._idle is None:
            self._idle = asyncio.Event()
        self._idle.clear()
        self._handle = loop.call_later(self.delay_seconds, self._fire)

    def cancel(self) -> None:
        """Drop the pending run, if any. A run already started continues."""
        self._drop_handle()
        if self._idle is not None:
            self._idle.set()

    def _drop_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def flush(self) -> Any:
        """Run the callback now, cancelling the timer."""
        self.cancel()
        result = self._callback()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def wait(self) -> None:
        """Wait for the pending (or running) callback to finish."""
        if self._handle is not None and self._idle is not None:
            await self._idle.wait()
        if self._task is not None:
            await self._task

    def _fire(self) -> None:
        self._handle = None
        try:
            result = self._callback()
        except Exception:
            logger.exception("debounced_callback_failed")
            result = None
        if inspect.isawaitable(result):
            self._task = asyncio.ensure_future(result)
            self._task.add_done_callback(self._log_failure)
        self._idle.set()

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "debounced_callback_failed",
                error=str(error),
                error_type=type(error).__name__,
            )


__all__ = ["DebouncedScheduler"]
