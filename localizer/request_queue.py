"""Serialized, rate-limited dispatch of provider calls."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Optional

from .structures import QueueTask

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class QueueState(Enum):
    IDLE = "idle"
    DRAINING = "draining"


class RateLimitedQueue:
    """FIFO queue that runs one task at a time with spacing between dispatches.

    A single worker task drains the queue. Before each dispatch it waits
    until at least ``min_spacing`` seconds have passed since the previous
    dispatch started; the first dispatch never waits. After a task settles
    and more work is pending, the worker also cools down for ``min_spacing``
    seconds. A failing task only fails its own future; if the worker itself is
    cancelled, every waiting task is cancelled with it.
    """

    def __init__(
        self,
        min_spacing: float = 2.5,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if min_spacing < 0:
            raise ValueError("min_spacing must not be negative")
        self.min_spacing = min_spacing
        self._clock = clock
        self._sleep = sleep
        self._tasks: Deque[QueueTask] = deque()
        self._state = QueueState.IDLE
        self._worker: Optional["asyncio.Task[None]"] = None
        self._last_dispatch: Optional[float] = None

    @property
    def state(self) -> QueueState:
        return self._state

    def __len__(self) -> int:
        return len(self._tasks)

    def delay_before_dispatch(self, now: float) -> float:
        """Seconds to wait before a dispatch starting at ``now``."""

        if self._last_dispatch is None:
            return 0.0
        return max(0.0, self.min_spacing - (now - self._last_dispatch))

    def enqueue(self, work: Callable[[], Awaitable[Any]]) -> "asyncio.Future[Any]":
        """Append ``work`` and return the future that settles with its result."""

        loop = asyncio.get_running_loop()
        task = QueueTask(work=work, future=loop.create_future())
        self._tasks.append(task)
        if self._state is QueueState.IDLE:
            self._state = QueueState.DRAINING
            self._worker = loop.create_task(self._drain())
        return task.future

    async def submit(self, work: Callable[[], Awaitable[Any]]) -> Any:
        return await self.enqueue(work)

    async def join(self) -> None:
        """Wait until the queue has drained."""

        while self._worker is not None and not self._worker.done():
            await asyncio.wait({self._worker})

    def clear(self) -> int:
        """Drop pending tasks, cancelling their futures. Returns how many."""

        dropped = 0
        while self._tasks:
            task = self._tasks.popleft()
            if not task.future.done():
                task.future.cancel()
                dropped += 1
        return dropped

    async def _drain(self) -> None:
        try:
            while self._tasks:
                task = self._tasks.popleft()
                if task.future.done():
                    continue

                try:
                    delay = self.delay_before_dispatch(self._clock())
                    if delay > 0:
                        await self._sleep(delay)

                    self._last_dispatch = self._clock()
                    logger.debug("Dispatching queued task (%d waiting)", len(self._tasks))
                    result = await task.work()
                except asyncio.CancelledError:
                    if not task.future.done():
                        task.future.cancel()
                    raise
                except Exception as exc:
                    if not task.future.done():
                        task.future.set_exception(exc)
                else:
                    if not task.future.done():
                        task.future.set_result(result)

                if self._tasks:
                    await self._sleep(self.min_spacing)
        except asyncio.CancelledError:
            dropped = self.clear()
            if dropped:
                logger.debug("Queue worker cancelled, dropped %d waiting tasks", dropped)
            raise
        finally:
            self._state = QueueState.IDLE
            self._worker = None
