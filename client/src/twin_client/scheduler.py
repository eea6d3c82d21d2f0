from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Set

logger = logging.getLogger(__name__)

Callback = Callable[[], Awaitable[None]]


@dataclass(eq=False)
class TimerHandle:
    due: float
    callback: Callback
    cancelled: bool = False
    fired: bool = False
    _native: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired


class Scheduler:
    """Timer seam for the polling loops: ``schedule`` / ``cancel`` / ``now``."""

    def now(self) -> float:
        raise NotImplementedError

    def schedule(self, delay_s: float, callback: Callback) -> TimerHandle:
        raise NotImplementedError

    def cancel(self, handle: TimerHandle | None) -> None:
        raise NotImplementedError


class AsyncioScheduler(Scheduler):
    """Runs callbacks as tasks on the running event loop via ``call_later``."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def now(self) -> float:
        return time.monotonic()

    def schedule(self, delay_s: float, callback: Callback) -> TimerHandle:
        loop = asyncio.get_running_loop()
        handle = TimerHandle(due=self.now() + delay_s, callback=callback)
        handle._native = loop.call_later(max(delay_s, 0.0), self._fire, handle)
        return handle

    def cancel(self, handle: TimerHandle | None) -> None:
        if handle is None:
            return
        handle.cancelled = True
        if handle._native is not None:
            handle._native.cancel()

    def _fire(self, handle: TimerHandle) -> None:
        if not handle.active:
            return
        handle.fired = True
        task = asyncio.ensure_future(handle.callback())
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("scheduled callback failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for callbacks that have already fired to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler; time only moves when :meth:`advance` is awaited."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: List[Any] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def schedule(self, delay_s: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(due=self._now + max(delay_s, 0.0), callback=callback)
        heapq.heappush(self._queue, (handle.due, next(self._counter), handle))
        return handle

    def cancel(self, handle: TimerHandle | None) -> None:
        if handle is not None:
            handle.cancelled = True

    def pending(self) -> List[TimerHandle]:
        return [entry[2] for entry in sorted(self._queue) if entry[2].active]

    async def advance(self, seconds: float) -> int:
        """Move the clock forward, awaiting each due callback in order.

        Returns the number of callbacks that ran.
        """

        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if not handle.active:
                continue
            self._now = max(self._now, due)
            handle.fired = True
            await handle.callback()
            ran += 1
        self._now = target
        return ran
