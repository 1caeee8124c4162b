"""Retry scheduler - delayed callbacks the connection manager can cancel."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

RetryCallback = Callable[[], Awaitable[None]]


class ScheduledCall(ABC):
    """Handle to a pending delayed callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Prevent the callback from running. No-op once it has started."""

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        """Whether cancel() was called before the callback ran."""


class RetryScheduler(ABC):
    """Runs a coroutine callback after a delay."""

    @abstractmethod
    def call_later(self, delay_seconds: float, callback: RetryCallback) -> ScheduledCall:
        """Schedule callback to run after delay_seconds."""


class _TaskCall(ScheduledCall):
    def __init__(self) -> None:
        self.task: asyncio.Task[None] | None = None
        self.started = False
        self._cancelled = False

    def cancel(self) -> None:
        if self.started or self._cancelled:
            return
        self._cancelled = True
        if self.task is not None:
            self.task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler(RetryScheduler):
    """Scheduler backed by asyncio tasks on the running loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def call_later(self, delay_seconds: float, callback: RetryCallback) -> ScheduledCall:
        handle = _TaskCall()

        async def run() -> None:
            await asyncio.sleep(delay_seconds)
            if handle.cancelled:
                return
            handle.started = True
            await callback()

        task = asyncio.get_running_loop().create_task(run())
        handle.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle

    @property
    def pending(self) -> int:
        """Number of timers not yet finished."""
        return len(self._tasks)
