from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[None]]


class PeriodicTask:
    """Run an async callback every `interval` seconds until stopped.

    Failures of the callback are logged and the loop keeps going.
    """

    def __init__(self, name: str, interval: float, callback: AsyncCallback, run_immediately: bool = False) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            await self._task
            self._task = None

    async def _wait(self) -> bool:
        # True when stop was requested during the wait
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run(self) -> None:
        logger.debug("%s started (interval=%ss)", self.name, self.interval)

        if not self._run_immediately and await self._wait():
            return

        while not self._stop.is_set():
            try:
                await self._callback()
            except Exception as e:
                logger.exception("%s failed: %s", self.name, e)

            if await self._wait():
                break

        logger.debug("%s stopped", self.name)


class DelayedCall:
    """A cancellable one-shot timer for an async callback.

    Scheduling again before the timer fired replaces the pending call.
    """

    def __init__(self, name: str, delay: float, callback: AsyncCallback) -> None:
        self.name = name
        self.delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def in_flight(self) -> int:
        return sum(1 for t in self._tasks if not t.done())

    def schedule(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.create_task(self._invoke(), name=self.name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _invoke(self) -> None:
        try:
            await self._callback()
        except Exception as e:
            logger.exception("%s failed: %s", self.name, e)

    async def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        # Every call already fired, not just the latest one
        running = [t for t in self._tasks if not t.done()]
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        self._tasks.clear()
