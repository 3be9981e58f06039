"""Thread-based scheduler for automatic question closure."""

from __future__ import annotations

import logging
from threading import Timer
from typing import Callable

logger = logging.getLogger(__name__)


class ThreadingTimerTask:
    """Handle to one pending callback on a daemon ``threading.Timer``."""

    def __init__(self, timer: Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def is_pending(self) -> bool:
        return self._timer.is_alive() and not self._timer.finished.is_set()


class ThreadingTimerScheduler:
    """Schedules deferred callbacks, one daemon thread per task."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ThreadingTimerTask:
        timer = Timer(max(0.0, delay_seconds), self._run, args=(callback,))
        timer.daemon = True
        timer.name = "PollClosureTimer"
        timer.start()
        return ThreadingTimerTask(timer)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Scheduled poll callback failed")
