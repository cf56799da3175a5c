import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingHandle:
    """
    Runs a callback every `interval` seconds until cancelled. Each run is
    scheduled from the loop time of the first one, so a slow callback does not
    make the period drift.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable):
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._start = loop.time()
        self._runs = 0
        self._cancelled = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._schedule_next()

    def _schedule_next(self):
        self._runs += 1
        when = self._start + self._runs * self._interval
        self._timer = self._loop.call_at(when, self._run)

    def _run(self):
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            logger.error(f"Repeating callback {self._callback!r} failed", exc_info=True)
        if not self._cancelled:
            self._schedule_next()

    def cancel(self):
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def cancelled(self) -> bool:
        return self._cancelled


class OneShotHandle:
    def __init__(self, loop: asyncio.AbstractEventLoop, delay: float, callback: Callable):
        self._callback = callback
        self._cancelled = False
        self._timer = loop.call_later(delay, self._run)

    def _run(self):
        try:
            self._callback()
        except Exception:
            logger.error(f"Delayed callback {self._callback!r} failed", exc_info=True)

    def cancel(self):
        self._cancelled = True
        self._timer.cancel()

    def cancelled(self) -> bool:
        return self._cancelled


class LoopScheduler:
    """
    Gives the devices one-shot and repeating callbacks on the asyncio loop.
    Only to be used from the loop thread.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()

    def time(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable) -> OneShotHandle:
        return OneShotHandle(self.loop, delay, callback)

    def call_every(self, interval: float, callback: Callable) -> RepeatingHandle:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        return RepeatingHandle(self.loop, interval, callback)
