"""Clock and asyncio-backed one-shot timers"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Set

from domain.gateways import Clock, TimerHandle, TimerService

logger = logging.getLogger(__name__)


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Manually advanced clock"""

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    def advance(self, **delta) -> None:
        self._now = self._now + timedelta(**delta)


class AsyncioTimerHandle(TimerHandle):

    def __init__(self, task: "asyncio.Task[None]"):
        self._task = task

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    def is_active(self) -> bool:
        return not self._task.done()


class AsyncioTimerService(TimerService):
    """Schedules callbacks as tasks on the running event loop"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, delay_seconds: float, callback: Callable[[], Awaitable[None]]) -> TimerHandle:
        task = asyncio.get_running_loop().create_task(self._run(delay_seconds, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return AsyncioTimerHandle(task)

    async def _run(self, delay_seconds: float, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(delay_seconds)
        try:
            await callback()
        except Exception:
            logger.exception("Timer callback failed")

    def pending(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def cancel_all(self, timeout: Optional[float] = None) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)
