"""
Scheduling context for the game engine.

The engine never sleeps or spawns threads. It asks a scheduler to run a
callback later and keeps the returned handle so it can cancel it. A
``Scheduler`` also exposes monotonic time in seconds.

``AsyncioScheduler`` runs callbacks on an asyncio event loop.
``ManualScheduler`` only runs callbacks when ``advance`` is called,
which makes timers deterministic in tests and lets hosts with their own
frame loop pump the engine.
"""

import asyncio
import heapq
import itertools
import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class Handle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Single-threaded scheduling context."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...

    def time(self) -> float: ...


class AsyncioScheduler:
    """
    Scheduler backed by an asyncio event loop.

    Without an explicit loop it must be created from inside a running loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(delay, callback)

    def time(self) -> float:
        return self._loop.time()


class ManualHandle:
    """Handle returned by ManualScheduler."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by explicit time advances.

    Callbacks due at the same time run in the order they were scheduled.
    Callbacks scheduled while advancing run in the same ``advance`` call
    if they fall due before its end.
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._queue: list[tuple[float, int, ManualHandle]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def time(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not been cancelled."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        """
        Move time forward, running every callback that falls due.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError("seconds must be non-negative")

        # Small tolerance so repeated 0.1 s steps line up with the deadline
        deadline = self._now + seconds + 1e-9
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, when)
            handle.callback()
        self._now = max(self._now, deadline - 1e-9)

    def run_all(self, limit: int = 100_000) -> None:
        """Run scheduled callbacks until the queue is empty."""
        for _ in range(limit):
            if not self._queue:
                return
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, when)
            handle.callback()
        logger.warning(f"ManualScheduler.run_all stopped after {limit} callbacks")
