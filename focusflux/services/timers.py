import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Set

from focusflux.models.entities import TimerHandle

logger = logging.getLogger(__name__)

# (delay_seconds, callback) -> cancellable handle
TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]

# Schedules a coroutine function (not a coroutine object) on the loop
AsyncScheduler = Callable[[Callable[[], object]], object]

Clock = Callable[[], datetime]


class LoopTimers:
    """TimerFactory backed by an asyncio event loop's call_later.

    Framework-agnostic: the loop is looked up lazily so the object can be
    built before the loop starts, but arming a timer requires a running loop.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._tasks: Set[asyncio.Task] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as e:
            raise RuntimeError("Reminder timers need a running event loop or an injected loop") from e

    def __call__(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback)

    def run_async(self, coroutine_function: Callable[[], object]) -> asyncio.Task:
        """AsyncScheduler: run a coroutine function as a task on the loop."""
        task = self._get_loop().create_task(coroutine_function())
        # Loop holds tasks weakly
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed", exc_info=error)
