"""
Scheduled-task abstraction for delayed callbacks.

The command log uses it to settle bursts of keyboard nudges. Any object with
``call_later(delay, callback)`` returning something with ``cancel()`` works,
so hosts can plug in their own event loop timers.
"""

import asyncio
import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class ScheduledTask:
    """A callback due at a point of a scheduler's clock."""

    def __init__(self, callback: Callable[[], None], due: float):
        self.callback = callback
        self.due = due
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """
    Scheduler driven by an explicit clock.

    Time only moves when ``advance`` is called, which makes debounce
    behaviour deterministic in tests and in hosts that pump their own clock.
    """

    def __init__(self, now: float = 0.0):
        self.now = now
        self._tasks: List[ScheduledTask] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(callback, self.now + delay)
        self._tasks.append(task)
        return task

    @property
    def pending(self) -> int:
        """Number of tasks not yet run nor cancelled."""
        return sum(1 for t in self._tasks if not t.cancelled())

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and run every task that became due.

        Returns:
            Number of callbacks run
        """
        self.now += seconds
        ran = 0
        while True:
            due = [t for t in self._tasks if not t.cancelled() and t.due <= self.now]
            if not due:
                break
            task = min(due, key=lambda t: t.due)
            self._tasks.remove(task)
            task.callback()
            ran += 1
        self._tasks = [t for t in self._tasks if not t.cancelled()]
        return ran


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop if loop is not None else asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback)
